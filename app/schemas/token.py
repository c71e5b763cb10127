from pydantic import BaseModel, ConfigDict, Field

from app.services.token_service import TokenPair


class Token(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    access_token: str = Field(..., alias="accessToken", description="Short-lived access token.")
    refresh_token: str = Field(..., alias="refreshToken", description="Long-lived refresh token.")
    token_type: str = Field("Bearer", alias="tokenType", pattern="^Bearer$")
    expires_in: int = Field(..., alias="expiresIn", description="Seconds before the access token expires.")

    @classmethod
    def from_pair(cls, pair: TokenPair) -> "Token":
        return cls(
            access_token=pair.access_token,
            refresh_token=pair.refresh_token,
            token_type=pair.token_type,
            expires_in=pair.expires_in,
        )


class RefreshRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    refresh_token: str = Field(..., alias="refreshToken", min_length=1)
