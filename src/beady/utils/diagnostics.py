from typing import List, Optional
from pydantic import BaseModel

class BeadyDiagnostic(BaseModel):
    """
    Standardized error reporting object for template and watch setup issues.
    """
    file_path: str
    error_code: str
    message: str
    severity: str = "error" # 'error', 'warning', 'critical'
    suggestion: Optional[str] = None
    line_number: Optional[int] = None

    def __str__(self) -> str:
        loc = f"{self.file_path}"
        if self.line_number:
            loc += f":{self.line_number}"
        return f"[{self.error_code}] {self.message} (at {loc})"

class TemplateParseError(Exception):
    """
    Raised when the template set cannot be (re)built. Always fatal to the process.
    """
    def __init__(self, message: str, diagnostics: Optional[List[BeadyDiagnostic]] = None):
        self.message = message
        self.diagnostics = list(diagnostics or [])
        super().__init__(message)

class TemplateNotFoundError(KeyError):
    """Raised when rendering a template name missing from the current snapshot."""

class WatchSetupError(Exception):
    """
    Raised when a watch root is missing or the watch mechanism cannot start.
    """
    def __init__(self, message: str, path: Optional[str] = None):
        self.message = message
        self.path = path
        loc = f" (at {path})" if path else ""
        super().__init__(f"{message}{loc}")
