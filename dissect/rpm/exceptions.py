import traceback


class Error(Exception):
    """Generic dissect.rpm error"""

    def __init__(self, message=None, cause=None, extra=None):
        if extra:
            exceptions = "\n\n".join(["".join(traceback.format_exception_only(type(e), e)) for e in extra])
            message = f"{message}\n\nAdditionally, the following exceptions occurred:\n\n{exceptions}"

        super().__init__(message)
        self.__cause__ = cause
        self.__extra__ = extra


class FormatError(Error, ValueError):
    """The data is not a well-formed RPM structure."""


class TagNotFoundError(Error, LookupError):
    """The requested tag is not present in the header."""


class TypeMismatchError(Error, TypeError):
    """The entry exists but holds a different value type than requested."""


class SignatureMissingError(TagNotFoundError):
    """An expected signature tag is absent from the signature header."""


class CryptoError(Error):
    """A digest or signature operation failed."""


class DigestMismatchError(CryptoError):
    """A digest stored in the signature header does not match the package contents."""


class SignatureVerificationError(CryptoError):
    """A signature did not verify."""


class HeaderSignatureError(SignatureVerificationError):
    """The signature spanning only the main header did not verify."""


class PayloadSignatureError(SignatureVerificationError):
    """The signature spanning the main header and the payload did not verify."""


class ConfigError(Error, ValueError):
    """A setting in a ``.rpmcfg.py`` file has an invalid value."""


class ProcessError(Error, OSError):
    """A processor sink did not accept all of the data written to it."""
