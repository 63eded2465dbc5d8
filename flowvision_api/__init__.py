"""HTTP API for FlowVision analytics."""
