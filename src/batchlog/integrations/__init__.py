"""Host integrations that feed the telemetry plugin."""
