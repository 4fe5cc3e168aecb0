"""FlowForge: task lists with fractional ordering and AI-assisted planning."""
