"""Multi-channel audio splitter: downmix, per-channel volume and phase-cancellation checks."""
