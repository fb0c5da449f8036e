from chat_core.session.streaming import SessionConfig, StreamingSession, TurnState

__all__ = ["SessionConfig", "StreamingSession", "TurnState"]
