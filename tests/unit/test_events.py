"""Tests for Kubernetes event emission."""

from __future__ import annotations

from power_monitor_operator.utils.events import (
    emit_event,
    emit_finalizer_added,
    emit_invalid_resource,
    emit_reconcile_failed,
    emit_token_issued,
)

OBJ = {"apiVersion": "v1", "kind": "Secret", "metadata": {"name": "s", "namespace": "ns"}}


class TestEmitEvent:
    """Test cases for emit_event and its helpers."""

    def test_emit_event(self, mock_kopf_event):
        """Test that the event is posted through kopf."""
        emit_event(OBJ, "Reason", "hello")

        mock_kopf_event.assert_called_once_with(OBJ, reason="Reason", message="hello", type="Normal")

    def test_message_is_sanitized(self, mock_kopf_event):
        """Test that credentials never reach an event."""
        emit_reconcile_failed(OBJ, "failed: Bearer abc.def")

        message = mock_kopf_event.call_args.kwargs["message"]
        assert "abc.def" not in message
        assert mock_kopf_event.call_args.kwargs["type"] == "Warning"

    def test_finalizer_added(self, mock_kopf_event):
        """Test the finalizer event text."""
        emit_finalizer_added(OBJ, "example.io/finalizer")

        assert mock_kopf_event.call_args.kwargs["message"] == "Finalizer example.io/finalizer added"

    def test_token_issued(self, mock_kopf_event):
        """Test that the expiry is included."""
        emit_token_issued(OBJ, "2025-01-01T00:00:00Z")

        assert "2025-01-01T00:00:00Z" in mock_kopf_event.call_args.kwargs["message"]

    def test_invalid_resource_is_warning(self, mock_kopf_event):
        """Test the invalid resource event type."""
        emit_invalid_resource(OBJ, "only one instance is supported")

        assert mock_kopf_event.call_args.kwargs["type"] == "Warning"
