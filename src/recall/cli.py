"""Command-line interface for Recall Store."""

import logging
import time
from pathlib import Path

import fire
from dotenv import load_dotenv

# Load .env before src.core.paths reads RECALL_DATA_ROOT
_project_root = Path(__file__).parent.parent.parent
_env_file = _project_root / ".env"
if _env_file.exists():
    load_dotenv(_env_file)

logger = logging.getLogger(__name__)


def _open_store(config_path: str | None = None):
    from src.capture.store import CaptureStore
    from src.core.config import load_config
    from src.core.logging import setup_logging
    from src.core.paths import ensure_data_directories

    ensure_data_directories()
    setup_logging(console_level="WARNING")

    config = load_config(Path(config_path) if config_path else None)
    return CaptureStore(config).open()


class RecallCLI:
    """Recall Store CLI commands."""

    def status(self, config_path: str | None = None) -> dict:
        """Show store state, record counts and volume usage."""
        store = _open_store(config_path)
        try:
            return store.get_status()
        finally:
            store.close()

    def ingest(self, path: str, timestamp: int | None = None, config_path: str | None = None) -> dict:
        """Store an image file as a new capture and resolve its dedup decision.

        Args:
            path: PNG file to ingest
            timestamp: Capture timestamp in milliseconds (default: now)
        """
        if timestamp is None:
            timestamp = int(time.time() * 1000)

        data = Path(path).read_bytes()
        store = _open_store(config_path)
        try:
            with store.open_image_stream(timestamp) as stream:
                stream.write(data)
            return store.processed(timestamp).to_dict()
        finally:
            store.close()

    def get(self, timestamp: int, output: str, config_path: str | None = None) -> dict:
        """Write a capture's image bytes to a file."""
        store = _open_store(config_path)
        try:
            data = store.get_data(timestamp)
            record = store.get_record(timestamp)
        finally:
            store.close()

        Path(output).write_bytes(data)
        return {"output": output, "bytes": len(data), "record": record.to_dict()}

    def history(self, start: int, end: int, config_path: str | None = None) -> list[dict]:
        """List capture records between two timestamps (inclusive)."""
        store = _open_store(config_path)
        try:
            return [record.to_dict() for record in store.list_between(start, end)]
        finally:
            store.close()

    def marked(self, status: str = "Deleted", config_path: str | None = None) -> list[int]:
        """List timestamps carrying a mark."""
        store = _open_store(config_path)
        try:
            return sorted(store.list_marked(status))
        finally:
            store.close()

    def unmarked(self, status: str = "Deleted", config_path: str | None = None) -> list[int]:
        """List timestamps not carrying a mark."""
        store = _open_store(config_path)
        try:
            return sorted(store.list_unmarked(status))
        finally:
            store.close()

    def reclaim(self, config_path: str | None = None) -> dict:
        """Run one space reclamation pass."""
        store = _open_store(config_path)
        try:
            return store.check_space().to_dict()
        finally:
            store.close()

    def hash(self, path: str) -> dict:
        """Compute the perceptual fingerprint of an image."""
        from src.capture.dedup import PerceptualHashEngine

        fingerprint = PerceptualHashEngine().fingerprint(path)
        return {"fingerprint": fingerprint.bits, "hex": str(fingerprint.hash_value)}

    def compare(self, path1: str, path2: str, threshold: float = 0.95) -> dict:
        """Compare two images for similarity."""
        from src.capture.dedup import PerceptualHashEngine

        distance, similarity = PerceptualHashEngine().compare(path1, path2)
        return {
            "hamming_distance": distance,
            "similarity": similarity,
            "is_duplicate": similarity >= threshold,
            "threshold": threshold,
        }

    def migrate(self) -> dict:
        """Run pending index migrations."""
        from src.db.migrations import MigrationRunner

        return {"applied": MigrationRunner().run_migrations()}


def main() -> None:
    """Main entry point for the Recall Store CLI."""
    fire.Fire(RecallCLI)


if __name__ == "__main__":
    main()
