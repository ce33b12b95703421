from pydantic import BaseModel

class Token(BaseModel):
    access_token: str
    token_type: str

class IdentityTokenIn(BaseModel):
    id_token: str
