import sys
import unittest
from pathlib import Path

ROOT = Path(__file__).resolve().parents[2]
sys.path.insert(0, str(ROOT / "packages" / "protocol"))

from gripview_protocol.models import DEFAULT_PORT, MAGIC_NUMBERS, CloseReason, ConnectionTarget, SessionState


class ProtocolStateTests(unittest.TestCase):
    def test_session_states_present(self):
        self.assertEqual(SessionState.CONNECTING.value, "Connecting")
        self.assertEqual(SessionState.HANDSHAKING.value, "Handshaking")
        self.assertEqual(SessionState.STREAMING.value, "Streaming")
        self.assertEqual(SessionState.CLOSED.value, "Closed")

    def test_close_reasons(self):
        self.assertEqual({r.value for r in CloseReason}, {"ok", "error", "cancelled"})

    def test_constants(self):
        self.assertEqual(DEFAULT_PORT, 1180)
        self.assertEqual(MAGIC_NUMBERS, bytes([1, 0, 0, 0]))
        self.assertEqual(ConnectionTarget("roborio").port, 1180)


if __name__ == "__main__":
    unittest.main()
