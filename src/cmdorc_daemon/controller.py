"""Build loop for daemon mode: run the build command, wait, repeat."""

import logging
from pathlib import Path

from cmdorc import CommandOrchestrator, load_config

from cmdorc_daemon.config import DaemonConfig, load_daemon_config
from cmdorc_daemon.ignore import relative_posix
from cmdorc_daemon.notifier import DaemonNotifier, NoOpNotifier
from cmdorc_daemon.session import Session
from cmdorc_daemon.wait import DaemonPrompt, StdinInput

logger = logging.getLogger(__name__)


class DaemonController:
    """Owns the cmdorc orchestrator and, in daemon mode, one watch Session.

    The orchestrator only runs the configured build command; which files
    it produces and how is up to that command.
    """

    def __init__(
        self,
        config_path: str | Path,
        config: DaemonConfig | None = None,
        notifier: DaemonNotifier | None = None,
        prompt: DaemonPrompt | None = None,
        input_source: StdinInput | None = None,
        orchestrator: CommandOrchestrator | None = None,
    ):
        """Initialize controller.

        Args:
            config_path: Path to TOML config
            config: Daemon settings (loaded from config_path if omitted)
            notifier: Optional notification handler (defaults to NoOpNotifier - silent)
            prompt: Prompt shown when the user interrupts a wait
            input_source: Console input used to interrupt a wait
            orchestrator: Pre-built orchestrator (built from config_path if omitted)
        """
        self.config_path = Path(config_path)
        self.config = config or load_daemon_config(self.config_path)
        self.notifier = notifier or NoOpNotifier()
        self._prompt = prompt
        self._input = input_source

        if orchestrator is None:
            try:
                orchestrator = CommandOrchestrator(load_config(self.config_path))
            except Exception as e:
                logger.error(f"Failed to load commands from {self.config_path}: {e}")
                raise
        self.orchestrator = orchestrator
        self.command = self._resolve_command()
        self.session: Session | None = None

    def _resolve_command(self) -> str:
        name = self.config.build_command
        if name:
            if not self.orchestrator.has_command(name):
                raise ValueError(f"Build command '{name}' is not defined in {self.config_path}")
            return name
        names = self.orchestrator.list_commands()
        if not names:
            raise ValueError(f"No commands defined in {self.config_path}")
        return names[0]

    def create_session(self) -> Session:
        """Build the watch session for this job (not started)."""
        cfg = self.config
        session = Session(
            root=cfg.root,
            job=cfg.job,
            tmpdir=cfg.tmpdir,
            latency=cfg.listen_interval,
            prefix=cfg.tool_prefix,
            sibling_latency=cfg.sibling_interval,
            ignore=cfg.ignore,
            prompt=self._prompt,
            input_source=self._input,
            notifier=self.notifier,
        )
        # Build artefacts mirrored into tmpdir must not look like source edits
        rel_tmp = relative_posix(session.tmpdir, session.root)
        if rel_tmp:
            session.register(f"{rel_tmp}/")
        return session

    async def build(self) -> bool:
        """Run the build command once and wait for it to finish.

        Returns:
            True if the command succeeded
        """
        self.notifier.info(f"Running {self.command}")
        handle = await self.orchestrator.run_command(self.command)
        await handle.wait()
        state = handle.state.name
        if state == "SUCCESS":
            self.notifier.info(f"{self.command} succeeded")
            return True
        self.notifier.error(f"{self.command} finished with state {state}")
        return False

    async def run(self) -> int:
        """Run once, or loop build/wait until the user quits in daemon mode.

        Returns:
            Process exit code for a single run

        Raises:
            SystemExit: When the user quits daemon mode
            MissingCapabilityError: If daemon mode cannot watch files
        """
        if not self.config.daemon:
            return 0 if await self.build() else 1

        self.config.tmpdir.mkdir(parents=True, exist_ok=True)
        self.session = self.create_session()
        self.session.start()
        self.notifier.info("Daemon mode: press Enter to pause")
        try:
            while True:
                await self.build()
                await self.session.wait_for_changes()
        finally:
            self.session.stop()
            self.session.cleanup()
