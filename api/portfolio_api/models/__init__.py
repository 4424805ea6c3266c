"""Portfolio API Models.

ORM models (database tables):
    from portfolio_api.models.orm import AdminRecord, PasskeyCredential

Pydantic contracts (API request/response):
    from portfolio_api.models.contracts import PinVerifyRequest, PasskeyPublic

Enums:
    from portfolio_api.models.enums import LoginStage
"""
