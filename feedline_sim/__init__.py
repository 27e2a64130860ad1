"""Material-feeding line (source, parallel paths, synchronized takes) simulator.

Public entrypoints:
- advance, FeedLineSimulator (from feedline_sim.sim)
- SimulationState (from feedline_sim.models)
- LineConfig, Config (from feedline_sim.config)
- compute_stats (from feedline_sim.stats)
"""
from .config import Config, DistributionLogic, LineConfig
from .models import SimulationState, SourceState
from .sim import FeedLineSimulator, advance
from .stats import compute_stats
