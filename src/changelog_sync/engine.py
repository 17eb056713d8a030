"""Migration engine façade.

``MigrationEngine`` opens a session for a (master changelog, datasource)
pair; ``MigrationEngineAdapter`` wraps that session with the policy the
reconciler and orchestrator rely on: listing and tagging raise, the
rollback simulation and the update report failure as ``False``, and a
failed rollback always propagates.
"""

import logging
from pathlib import Path
from typing import List, Optional, Protocol

from src.changelog_sync.config import ChangeSet
from src.changelog_sync.context import DatasourceContext
from src.changelog_sync.exceptions import EngineError
from src.logging_config.performance import PerformanceTimer

logger = logging.getLogger(__name__)


class EngineSession(Protocol):
    """Engine primitives bound to one master changelog and datasource."""

    def list_unrun(self, context: str) -> List[ChangeSet]: ...

    def tag(self, label: str) -> None: ...

    def update_testing_rollback(self, context: str) -> None: ...

    def update(self, context: str) -> None: ...

    def rollback(self, tag: str, context: str) -> None: ...


class MigrationEngine(Protocol):
    def open(self, master_file: Path, ctx: DatasourceContext) -> EngineSession: ...


class MigrationEngineAdapter:
    """Policy wrapper around an engine session for one datasource."""

    def __init__(self, session: EngineSession, ctx: DatasourceContext, master_file: Path):
        self.session = session
        self.ctx = ctx
        self.master_file = master_file

    @classmethod
    def open(
        cls, engine: MigrationEngine, ctx: DatasourceContext, master_file: Optional[Path] = None
    ) -> "MigrationEngineAdapter":
        master_file = master_file or ctx.master_file
        try:
            session = engine.open(master_file, ctx)
        except EngineError:
            raise
        except Exception as e:
            raise EngineError(
                f"Cannot create migration engine session: {e}",
                datasource=ctx.name,
                filename=str(master_file),
            ) from e
        return cls(session, ctx, master_file)

    def list_unrun_changesets(self) -> List[ChangeSet]:
        try:
            return list(self.session.list_unrun(self.ctx.engine_context))
        except EngineError:
            raise
        except Exception as e:
            raise EngineError(
                f"Cannot get list of changesets: {e}", datasource=self.ctx.name
            ) from e

    def changelog_filenames(self) -> List[str]:
        """Distinct files of the unrun changesets, in first-seen order."""
        filenames: List[str] = []
        for change_set in self.list_unrun_changesets():
            if change_set.file_path not in filenames:
                filenames.append(change_set.file_path)
        return filenames

    def tag(self, label: str) -> str:
        logger.info("Tagging current state ...", extra={"tag": label})
        try:
            self.session.tag(label)
        except Exception as e:
            raise EngineError(
                f"Cannot tag current state: {e}", datasource=self.ctx.name, tag=label
            ) from e
        logger.info("Tagging current state (ok)", extra={"tag": label})
        return label

    def test_rollback(self) -> bool:
        """Apply, roll back and re-apply unrun changesets as a dry run."""
        logger.info("Test rollback changesets ...")
        try:
            with PerformanceTimer("test rollback"):
                self.session.update_testing_rollback(self.ctx.engine_context)
        except Exception as e:
            logger.warning("Test rollback changesets (FAIL): %s", e)
            return False
        logger.info("Test rollback changesets (ok)")
        return True

    def update(self) -> bool:
        logger.info("Applying changesets ...")
        try:
            with PerformanceTimer("update"):
                self.session.update(self.ctx.engine_context)
        except Exception as e:
            logger.warning("Applying changesets (FAIL)")
            logger.error("Applying changesets error: %s", e, exc_info=True)
            return False
        logger.info("Applying changesets (ok)")
        return True

    def rollback(self, tag: str) -> None:
        """Roll back to ``tag``.

        Raises:
            EngineError: The rollback could not complete. No automated
                repair is possible past this point.
        """
        logger.info("Trying rollback to tag: %s", tag, extra={"tag": tag})
        try:
            self.session.rollback(tag, self.ctx.engine_context)
        except Exception as e:
            raise EngineError(
                f"Cannot rollback changeset: {e}",
                datasource=self.ctx.name,
                filename=str(self.master_file),
                tag=tag,
            ) from e
        logger.info("Trying rollback (ok)", extra={"tag": tag})
