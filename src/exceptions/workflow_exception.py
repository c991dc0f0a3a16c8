class WorkflowException(Exception):
    """
    This is the base exception for all workflow exceptions
    """
    def __init__(self, message: str, status_code: int):
        self.message = message
        self.status_code = status_code
        super().__init__(self.message, self.status_code)

class WorkflowDBException(WorkflowException):
    """
    This is the exception for all workflow database exceptions
    """
    def __init__(self, message: str, status_code: int = 500):
        super().__init__(message=message, status_code=status_code)

class WorkflowNotFoundException(WorkflowException):
    """
    This is the exception when a workflow, or one of its nodes, edges,
    responses, conditions or variables is not found
    """
    def __init__(self, message: str):
        super().__init__(message=message, status_code=404)

class WorkflowValidationException(WorkflowException):
    """
    This is the exception for workflow validation errors
    """
    def __init__(self, message: str):
        super().__init__(message=message, status_code=400)

class MalformedDocumentException(WorkflowValidationException):
    """
    Raised by the codec when an imported document cannot be parsed
    """
    def __init__(self, message: str):
        super().__init__(message=message)

class SessionNotFoundException(WorkflowException):
    """
    This is the exception when a chat session is not found
    """
    def __init__(self, message: str):
        super().__init__(message=message, status_code=404)
