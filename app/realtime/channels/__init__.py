"""Socket.IO event handlers grouped by feature."""
