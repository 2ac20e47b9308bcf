"""Reply policies plugged into the dispatch loop."""

from shipbot.responders.base import FunctionResponder, Responder, as_responder
from shipbot.responders.chart import ChartResponder

__all__ = ["ChartResponder", "FunctionResponder", "Responder", "as_responder"]
