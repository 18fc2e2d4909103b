"""
Errors raised by the booking core and the services around it.
Each error carries the HTTP status the API reports it with.
"""


class ChargeHubError(Exception):
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(ChargeHubError):
    ''' Malformed or missing input '''
    status_code = 400


class NotFound(ChargeHubError):
    ''' The entity does not exist, or is not owned by the caller '''
    status_code = 404


class SlotConflict(ChargeHubError):
    ''' The requested slot overlaps an open booking on the same station '''
    status_code = 409


class InvalidTransition(ChargeHubError):
    ''' The lifecycle action is not permitted from the booking's current state '''
    status_code = 409
