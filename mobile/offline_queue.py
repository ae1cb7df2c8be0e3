"""
Reports that could not be uploaded, kept in a JSON file until the next flush.
"""
import json
import logging
import os
import tempfile

logger = logging.getLogger(__name__)

DEFAULT_QUEUE_PATH = os.environ.get(
    'BANTAYANI_QUEUE_PATH',
    os.path.join(os.path.expanduser('~'), '.bantayani', 'pendingUploads.json'),
)


class OfflineQueue:
    def __init__(self, path=None):
        self.path = path or DEFAULT_QUEUE_PATH

    def _load(self):
        if not os.path.exists(self.path):
            return []
        with open(self.path, 'r', encoding='utf-8') as f:
            content = f.read().strip()
        if not content:
            return []
        try:
            data = json.loads(content)
        except json.JSONDecodeError:
            logger.error("Offline queue at %s is corrupt; starting empty", self.path)
            return []
        return data if isinstance(data, list) else []

    def _save(self, items):
        directory = os.path.dirname(self.path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        # The queue file is only ever replaced whole
        fd, tmp_path = tempfile.mkstemp(dir=directory or None, prefix='.pendingUploads-', suffix='.tmp')
        try:
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                json.dump(items, f)
            os.replace(tmp_path, self.path)
        except Exception:
            os.unlink(tmp_path)
            raise

    def append(self, report):
        items = self._load()
        items.append(report)
        self._save(items)
        logger.info("Saved report offline (%d pending)", len(items))

    def items(self):
        return self._load()

    def __len__(self):
        return len(self._load())

    def clear(self):
        self._save([])

    def flush(self, submit):
        """
        Re-submit queued reports in order.

        Stops at the first report whose ``submit`` raises; only the
        successfully submitted prefix is removed. Returns how many went out.
        """
        items = self._load()
        sent = 0
        for report in items:
            try:
                submit(report)
            except Exception as e:
                logger.warning("Offline flush stopped after %d report(s): %s", sent, e)
                break
            sent += 1

        if sent:
            # Re-read so reports appended while flushing survive
            remaining = self._load()[sent:]
            self._save(remaining)
            logger.info("Flushed %d offline report(s), %d remaining", sent, len(remaining))
        return sent
