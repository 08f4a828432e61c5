"""Standard exit codes for the JBS CLI.

Scripts and cron wrappers can rely on these codes to tell a failed job
apart from a broken installation.
"""


class ExitCode:
    """Standard exit codes for the JBS CLI.

    These codes follow common Unix conventions where possible:
    - 0: Success
    - 1: General error
    - 130: Script terminated by Ctrl+C (SIGINT)

    JBS-specific codes start at 2:
    - 2: Configuration error (including unloadable task files)
    - 3: Job failed after all attempts
    - 4: Job skipped because an attempt is in flight
    - 6: Storage error
    - 7: Invalid argument
    - 8: Not found
    """

    # Standard success
    SUCCESS = 0

    # General errors
    GENERAL_ERROR = 1

    # JBS-specific errors
    CONFIGURATION_ERROR = 2
    JOB_FAILED = 3
    JOB_RUNNING = 4
    STORAGE_ERROR = 6
    INVALID_ARGUMENT = 7
    NOT_FOUND = 8

    # Signal-based exits (128 + signal number)
    CANCELLED = 130  # Ctrl+C (SIGINT = 2)

    @classmethod
    def get_name(cls, code: int) -> str:
        """Get the name of an exit code.

        Args:
            code: The exit code value

        Returns:
            Human-readable name for the exit code
        """
        names = {
            cls.SUCCESS: "SUCCESS",
            cls.GENERAL_ERROR: "GENERAL_ERROR",
            cls.CONFIGURATION_ERROR: "CONFIGURATION_ERROR",
            cls.JOB_FAILED: "JOB_FAILED",
            cls.JOB_RUNNING: "JOB_RUNNING",
            cls.STORAGE_ERROR: "STORAGE_ERROR",
            cls.INVALID_ARGUMENT: "INVALID_ARGUMENT",
            cls.NOT_FOUND: "NOT_FOUND",
            cls.CANCELLED: "CANCELLED",
        }
        return names.get(code, f"UNKNOWN({code})")

    @classmethod
    def get_description(cls, code: int) -> str:
        """Get the description of an exit code.

        Args:
            code: The exit code value

        Returns:
            Human-readable description for the exit code
        """
        descriptions = {
            cls.SUCCESS: "Operation completed successfully",
            cls.GENERAL_ERROR: "An unexpected error occurred",
            cls.CONFIGURATION_ERROR: "Configuration error or unloadable task file",
            cls.JOB_FAILED: "Job failed on every attempt",
            cls.JOB_RUNNING: "Job already has an attempt in flight",
            cls.STORAGE_ERROR: "Run store could not be opened or written",
            cls.INVALID_ARGUMENT: "Invalid command-line argument",
            cls.NOT_FOUND: "Requested job or run not found",
            cls.CANCELLED: "Operation cancelled by user",
        }
        return descriptions.get(code, f"Unknown exit code: {code}")
