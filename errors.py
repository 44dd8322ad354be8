"""도메인 예외 정의

서비스 계층은 HTTPException 대신 아래 예외를 발생시키고,
middleware.error_handlers 에서 HTTP 응답으로 변환한다.
"""


class DomainError(Exception):
    """도메인 예외 기본 클래스"""

    kind: str = "domain_error"
    status_code: int = 400
    default_message: str = "Request could not be processed"

    def __init__(self, message: str = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class NotFound(DomainError):
    kind = "not_found"
    status_code = 404
    default_message = "Not found"


class Forbidden(DomainError):
    kind = "forbidden"
    status_code = 403
    default_message = "Forbidden"


class Unauthorized(DomainError):
    kind = "unauthorized"
    status_code = 401
    default_message = "Unauthorized"


class InvalidState(DomainError):
    """현재 라이프사이클 상태에서 허용되지 않는 작업"""
    kind = "invalid_state"
    status_code = 400
    default_message = "Operation not allowed in current state"


class ChallengeAlreadyStarted(InvalidState):
    kind = "challenge_already_started"
    default_message = "This challenge has already started"


class ChallengeFull(InvalidState):
    kind = "challenge_full"
    default_message = "This challenge has reached its maximum number of participants"


class AlreadyExists(DomainError):
    kind = "already_exists"
    status_code = 400
    default_message = "Already exists"


class AlreadyJoined(AlreadyExists):
    kind = "already_joined"
    default_message = "You are already participating in this challenge"


class ValidationError(DomainError):
    kind = "validation_error"
    status_code = 400
    default_message = "Invalid request"


class PaymentInvalid(ValidationError):
    kind = "payment_invalid"
    default_message = "Payment confirmation is not valid for this challenge"


class PaymentGateError(DomainError):
    """결제 게이트 호출 실패 (거절/타임아웃) - 재시도하지 않음"""
    kind = "payment_gate_error"
    status_code = 500
    default_message = "Payment provider error"
