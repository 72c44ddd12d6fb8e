from relaybot.services.history_service import Customer, HistoryStore, append_history, list_history
from relaybot.services.pipeline import InboundPipeline, PipelineOutcome, PipelineState, build_pipeline
from relaybot.services.result import DispatchResult, Result

__all__ = [
    "Customer",
    "DispatchResult",
    "HistoryStore",
    "InboundPipeline",
    "PipelineOutcome",
    "PipelineState",
    "Result",
    "append_history",
    "build_pipeline",
    "list_history",
]
