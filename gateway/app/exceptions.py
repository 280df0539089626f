"""
Gateway error taxonomy.

Every failure that aborts a proxied request before a response has been
started is a ProcessingError. The application maps all of them to a single
500 response with a JSON body, without telling the client which stage failed.
"""


class ProcessingError(Exception):
    """Base exception for failures while resolving or forwarding a request"""
    pass


class TargetParseError(ProcessingError):
    """The normalized target string is not a valid absolute URL"""
    pass


class UpstreamTransportError(ProcessingError):
    """The upstream request failed at the network/transport level"""
    pass
