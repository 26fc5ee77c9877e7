# errors.py


class TransferError(Exception):
    """Base class for every failure raised by the transfer core."""


class InvalidInput(TransferError):
    """Bad source file, locator or save directory."""


class DescriptorBuildFailed(TransferError):
    """The engine could not lay out or serialize a descriptor."""


class SessionInitFailed(TransferError):
    """The engine returned an invalid handle or registration lost a race."""


class DuplicateRequest(TransferError):
    def __init__(self, request_id):
        super().__init__(f"Request id already registered: {request_id}")
        self.request_id = request_id


class DuplicateHash(TransferError):
    def __init__(self, content_hash):
        super().__init__(f"Content hash already registered: {content_hash}")
        self.content_hash = content_hash
