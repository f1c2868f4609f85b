"""
Arena Settler - Main Entry Point

Watches the wager contract for MatchFunded events and settles each funded
match: resolve the outcome, pin it with signer attestations, then settle
with the winner.

Usage:
    python -m arena_settler.main [--log-level LEVEL] [--start-block N]
    arena-settler --env-file .env.anvil

Configuration:
    The daemon reads configuration from:
    1. Environment variables
    2. A .env file (values already in the environment win)
    3. Command line arguments

Environment Variables:
    RPC_URL                   JSON-RPC endpoint (required)
    CONTRACT_ADDRESS          Wager contract address (required)
    SIGNER_PRIVATE_KEYS       Comma-separated signer keys, at least 2
    DAEMON_PRIVATE_KEY        First signer key (when SIGNER_PRIVATE_KEYS unset)
    ATTESTOR_PK_B             Second signer key (when SIGNER_PRIVATE_KEYS unset)
    SUBMITTER_PRIVATE_KEY     Transaction sender key (default: first signer)
    CHAIN_ID                  Chain id for the EIP-712 domain (default: 31337)
    EIP712_NAME               EIP-712 domain name (default: CheckmateArena)
    EIP712_VERSION            EIP-712 domain version (default: 1)
    FETCH_RETRY_COUNT         Outcome fetch attempts (default: 3)
    SUBMIT_RETRY_COUNT        Transaction attempts (default: 3)
    RETRY_DELAY_SECONDS       Base delay between attempts (default: 0)
    POLL_INTERVAL_SECONDS     Event poll interval (default: 5)
    START_BLOCK               First block to scan (default: current head)
    RESULT_SOURCE_URL         Results API base URL (default: stub payloads)
    LOG_LEVEL                 Logging level (DEBUG/INFO/WARNING/ERROR)
"""

from __future__ import annotations

import argparse
import asyncio
import atexit
import fcntl
import logging
import os
import signal
import sys
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Generator, Optional

from arena_settler.config import SettlerConfig
from arena_settler.errors import ConfigError

# Configure logging before imports
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()
logging.basicConfig(
    level=getattr(logging, LOG_LEVEL, logging.INFO),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)

# Default PID file location
DEFAULT_PID_FILE = "/tmp/arena-settler.pid"


class SingletonDaemonError(Exception):
    """Raised when another daemon instance is already running."""
    pass


@contextmanager
def singleton_lock(pid_file: str = DEFAULT_PID_FILE) -> Generator[None, None, None]:
    """
    Context manager that ensures only one daemon instance runs at a time.

    Two daemons sharing a sender key would race on nonces and double-submit
    every pin and settle, so a second instance refuses to start.

    Args:
        pid_file: Path to the PID file (default: /tmp/arena-settler.pid)

    Raises:
        SingletonDaemonError: If another instance is already running
    """
    pid_path = Path(pid_file)

    # Read existing PID before opening (which would truncate)
    existing_pid = None
    try:
        existing_pid = pid_path.read_text().strip()
    except FileNotFoundError:
        pass

    # Open/create the PID file (use "a" to avoid truncating before we have the lock)
    fp = open(pid_path, "a+")

    try:
        fcntl.flock(fp.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
    except (IOError, OSError):
        fp.close()
        if existing_pid:
            raise SingletonDaemonError(
                f"Another settler instance is already running (PID: {existing_pid}). "
                f"Kill it with: kill {existing_pid}"
            )
        raise SingletonDaemonError(
            "Another settler instance is already running. "
            "Check for existing processes: ps aux | grep arena_settler"
        )

    # We have the lock - now truncate and write our PID
    fp.seek(0)
    fp.truncate()
    fp.write(str(os.getpid()))
    fp.flush()

    def cleanup():
        try:
            fcntl.flock(fp.fileno(), fcntl.LOCK_UN)
            fp.close()
            pid_path.unlink(missing_ok=True)
        except (OSError, ValueError):
            pass

    atexit.register(cleanup)

    try:
        logger.info(f"Acquired singleton lock (PID: {os.getpid()}, file: {pid_file})")
        yield
    finally:
        cleanup()
        atexit.unregister(cleanup)


def build_result_source(config: SettlerConfig):
    """HTTP results API when configured, otherwise deterministic stub payloads."""
    from arena_settler.resolution import HttpResultSource, StubResultSource

    if config.result_source_url:
        return HttpResultSource(config.result_source_url, timeout=config.rpc_timeout_seconds)
    return StubResultSource()


class SettlerDaemon:
    """
    Settlement daemon orchestrator.

    Manages the lifecycle of all components:
    - Ledger transport (RPC)
    - Settlement pipeline (resolver, collector, submitter, orchestrator)
    - Event watcher
    - Health monitoring
    """

    def __init__(self, config: SettlerConfig):
        self.config = config
        self._running = False
        self._shutdown_event = asyncio.Event()
        self._started_at: Optional[datetime] = None

        # Components (initialized on start)
        self._transport = None
        self._result_source = None
        self._orchestrator = None
        self._watcher = None
        self._health_checker = None

    @property
    def orchestrator(self):
        return self._orchestrator

    @property
    def watcher(self):
        return self._watcher

    async def start(self) -> None:
        """Start the daemon and run until shutdown is requested."""
        logger.info("=" * 60)
        logger.info("ARENA SETTLER")
        logger.info("=" * 60)
        logger.info(f"Contract: {self.config.contract_address}")
        logger.info(f"Chain ID: {self.config.chain_id}")
        logger.info("=" * 60)

        self._running = True
        self._started_at = datetime.now(timezone.utc)
        self._shutdown_event.clear()

        self._setup_signal_handlers()

        try:
            await self._init_transport()

            if self._shutdown_event.is_set():
                logger.info("Shutdown requested during startup")
                return

            # Pipeline BEFORE watcher so no event arrives without a handler
            self._init_pipeline()
            await self._init_watcher()
            self._init_monitoring()

            logger.info("=" * 60)
            logger.info("Settler started successfully")
            logger.info("Press Ctrl+C to stop")
            logger.info("=" * 60)

            await self._run_loop()

        except Exception as e:
            logger.exception(f"Fatal error: {e}")
            raise
        finally:
            await self.stop()

    async def stop(self) -> None:
        """Stop the daemon gracefully."""
        if not self._running:
            return

        logger.info("Shutting down...")
        self._running = False
        self._shutdown_event.set()

        # Stop components in reverse order
        if self._watcher:
            try:
                await self._watcher.stop()
            except Exception as e:
                logger.warning(f"Error stopping watcher: {e}")

        if self._orchestrator:
            try:
                await self._orchestrator.stop()
            except Exception as e:
                logger.warning(f"Error stopping orchestrator: {e}")

        close = getattr(self._result_source, "close", None)
        if close is not None:
            try:
                await close()
            except Exception as e:
                logger.warning(f"Error closing result source: {e}")

        logger.info("Shutdown complete")

    async def request_shutdown(self, reason: str = "manual") -> None:
        """Request a graceful shutdown."""
        if not self._running:
            return
        logger.warning(f"Shutdown requested: {reason}")
        self._shutdown_event.set()

    async def _init_transport(self) -> None:
        """Connect to the node and check it serves the configured chain."""
        from arena_settler.ingestion import LedgerTransport

        self._transport = LedgerTransport(
            rpc_url=self.config.rpc_url,
            contract_address=self.config.contract_address,
            sender_private_key=self.config.sender_private_key,
            timeout=self.config.rpc_timeout_seconds,
            receipt_timeout=self.config.receipt_timeout_seconds,
        )

        chain_id = await self._transport.get_chain_id()
        if chain_id != self.config.chain_id:
            raise ConfigError(
                f"RPC node is on chain {chain_id}, but CHAIN_ID is {self.config.chain_id}. "
                "Signatures would not verify."
            )

        logger.info(f"RPC: Connected (chain {chain_id}, sender {self._transport.sender_address})")

    def _init_pipeline(self) -> None:
        """Build resolver, collector, submitter and orchestrator."""
        from arena_settler.attestation import AttestationCollector, Eip712Domain, SignerSet
        from arena_settler.core import MatchOrchestrator
        from arena_settler.execution import TransactionSubmitter
        from arena_settler.resolution import ResultResolver

        self._result_source = build_result_source(self.config)
        resolver = ResultResolver(
            source=self._result_source,
            retry_count=self.config.fetch_retry_count,
            retry_delay=self.config.retry_delay_seconds,
        )

        signer_set = SignerSet.from_private_keys(self.config.signer_private_keys)
        collector = AttestationCollector(
            signer_set=signer_set,
            domain=Eip712Domain(
                verifying_contract=self.config.contract_address,
                chain_id=self.config.chain_id,
                name=self.config.eip712_name,
                version=self.config.eip712_version,
            ),
        )
        logger.info(f"Signers: {len(signer_set)} ({', '.join(signer_set.addresses)})")

        submitter = TransactionSubmitter(
            transport=self._transport,
            retry_count=self.config.submit_retry_count,
            retry_delay=self.config.retry_delay_seconds,
        )

        self._orchestrator = MatchOrchestrator(
            resolver=resolver,
            collector=collector,
            submitter=submitter,
        )
        logger.info(f"Pipeline: Ready (source={type(self._result_source).__name__})")

    async def _init_watcher(self) -> None:
        """Start polling for MatchFunded."""
        from arena_settler.ingestion import EventWatcher

        self._watcher = EventWatcher(
            transport=self._transport,
            on_event=self._orchestrator.handle_funding_event,
            on_error=self._handle_watcher_error,
            poll_interval=self.config.poll_interval_seconds,
            start_block=self.config.start_block,
            max_block_range=self.config.max_block_range,
        )
        await self._watcher.start()

    def _init_monitoring(self) -> None:
        from arena_settler.monitoring import HealthChecker

        self._health_checker = HealthChecker(
            transport=self._transport,
            watcher=self._watcher,
            orchestrator=self._orchestrator,
        )

    def _handle_watcher_error(self, error: Exception) -> None:
        """Watcher errors are transient; the watcher keeps polling."""
        logger.warning(f"Watcher error ({type(error).__name__}): {error}")

    async def _run_loop(self) -> None:
        """Main run loop: periodic health checks and stats."""
        interval = self.config.health_check_interval_seconds

        while self._running:
            try:
                try:
                    await asyncio.wait_for(
                        self._shutdown_event.wait(),
                        timeout=interval,
                    )
                    break  # Shutdown requested
                except asyncio.TimeoutError:
                    pass

                if self._health_checker:
                    from arena_settler.monitoring import HealthStatus

                    health = await self._health_checker.check_all()
                    unhealthy = [
                        c for c in health.components
                        if c.status == HealthStatus.UNHEALTHY
                    ]
                    if unhealthy:
                        logger.warning(
                            f"Health check failed: "
                            f"{[f'{c.component}: {c.message}' for c in unhealthy]}"
                        )

                if self._orchestrator:
                    self._log_stats()

            except Exception as e:
                logger.error(f"Error in main loop: {e}")
                await asyncio.sleep(5)

    def _log_stats(self) -> None:
        stats = self._orchestrator.stats
        by_state = self._orchestrator.store.counts()
        logger.info(
            f"Stats: funded={stats.matches_started}, "
            f"pinned={stats.pinned}, settled={stats.settled}, "
            f"failed={stats.failed}, duplicates={stats.duplicates_ignored}, "
            f"in_flight={self._orchestrator.in_flight}"
        )
        logger.info(
            "States: " + ", ".join(f"{state.value}={n}" for state, n in by_state.items())
        )

    def _setup_signal_handlers(self) -> None:
        """Setup signal handlers for graceful shutdown."""
        loop = asyncio.get_running_loop()

        def handle_signal(sig):
            logger.info(f"Received signal {sig}")
            self._shutdown_event.set()

        try:
            for sig in (signal.SIGTERM, signal.SIGINT):
                loop.add_signal_handler(sig, lambda s=sig: handle_signal(s))
        except NotImplementedError:
            # Windows doesn't support add_signal_handler
            pass


def load_env_file(path: str = ".env") -> None:
    """Load environment variables from .env file if it exists."""
    env_path = Path(path)
    if env_path.exists():
        logger.info(f"Loading environment from {env_path}")
        with open(env_path) as f:
            for line in f:
                line = line.strip()
                if line and not line.startswith("#") and "=" in line:
                    key, _, value = line.partition("=")
                    value = value.strip().strip('"').strip("'")
                    os.environ.setdefault(key.strip(), value)


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Arena Settler - settles funded matches on-chain",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "--env-file",
        default=".env",
        help="Path to a .env file (default: .env)",
    )
    parser.add_argument(
        "--start-block",
        type=int,
        help="First block to scan for MatchFunded (overrides START_BLOCK)",
    )
    parser.add_argument(
        "--pid-file",
        default=DEFAULT_PID_FILE,
        help=f"Singleton lock file (default: {DEFAULT_PID_FILE})",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Override log level",
    )
    return parser.parse_args(argv)


def load_config(args: argparse.Namespace) -> SettlerConfig:
    """Environment config with command line overrides applied."""
    config = SettlerConfig.from_env()
    if args.start_block is not None:
        config = SettlerConfig.build(
            {**config.model_dump(), "start_block": args.start_block}
        )
    return config


async def main_async(args: argparse.Namespace) -> int:
    """Async main function."""
    try:
        config = load_config(args)
    except ConfigError as e:
        logger.error(str(e))
        logger.error("See the module docstring (--help) for configuration")
        return 1

    daemon = SettlerDaemon(config)

    try:
        await daemon.start()
        return 0
    except ConfigError as e:
        logger.error(str(e))
        return 1
    except KeyboardInterrupt:
        logger.info("Shutdown requested")
        return 0
    except Exception as e:
        logger.exception(f"Fatal error: {e}")
        return 1


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point."""
    args = parse_args(argv)

    load_env_file(args.env_file)

    if args.log_level:
        logging.getLogger().setLevel(getattr(logging, args.log_level))

    try:
        with singleton_lock(args.pid_file):
            try:
                return asyncio.run(main_async(args))
            except KeyboardInterrupt:
                return 0
    except SingletonDaemonError as e:
        logger.error(str(e))
        print(f"\n{e}\n", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
