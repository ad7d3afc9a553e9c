"""Infrastructure: response cache, metrics and background sweeps."""
