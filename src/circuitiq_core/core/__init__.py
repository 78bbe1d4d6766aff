"""Core engines: diagnostic sessions, usage quotas and wire tracing."""
