# runner/errors.py
class AgentError(Exception):
    pass

class BackendUnavailableError(AgentError):
    pass

class AdbError(BackendUnavailableError):
    pass

class GestureDispatchError(AgentError):
    pass

class ActionExecutionError(AgentError):
    pass

class FrameDecodeError(AgentError):
    pass

class ReasonerError(AgentError):
    pass

class ReasonerUnavailableError(ReasonerError):
    pass

class ReasonerResponseError(ReasonerError):
    pass
