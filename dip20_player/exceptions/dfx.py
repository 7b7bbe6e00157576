class DfxError(RuntimeError):
    """An invocation of the ``dfx`` executable failed.

    Typically, this is raised by :class:`dip20_player.dfx.Dfx` and translated into a
    :exc:`ProvisioningError` or :exc:`CallError` by its callers.
    """

    def __init__(self, command, reason, returncode=None, stderr=""):
        self.command = list(command)
        self.returncode = returncode
        self.stderr = (stderr or "").strip()
        message = f"`{' '.join(self.command[:4])} ...` {reason}"
        if self.stderr:
            message = f"{message}: {self.stderr}"
        super(DfxError, self).__init__(message)


class DfxNotFound(DfxError):
    """The ``dfx`` executable could not be found."""

    def __init__(self, command):
        super(DfxNotFound, self).__init__(command, "failed, executable not found")


class DfxTimeout(DfxError):
    """``dfx`` did not finish within the allotted time and was killed."""

    def __init__(self, command, timeout):
        super(DfxTimeout, self).__init__(command, f"timed out after {timeout}s")
        self.timeout = timeout
