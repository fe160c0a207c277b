"""
球员端小程序认证
JWT payload：{ playerId, unionid, phone, clubId }
员工端鉴权由外部网关负责，不在本服务内
"""
from dataclasses import dataclass
from datetime import datetime, timedelta, UTC
from typing import Optional
import logging

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import ExpiredSignatureError, JWTError, jwt

from fairway.config import settings

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)


@dataclass
class PlayerIdentity:
    """当前登录球员"""
    player_id: str
    club_id: str
    unionid: Optional[str] = None
    phone: Optional[str] = None


def _require_secret() -> str:
    secret = settings.get_jwt_secret()
    if not secret:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="服务器未配置 JWT_SECRET"
        )
    return secret


def create_player_token(player_id: str, club_id: Optional[str] = None,
                        unionid: Optional[str] = None, phone: Optional[str] = None,
                        expires_in: Optional[timedelta] = None) -> str:
    """签发球员 JWT"""
    expire = datetime.now(UTC) + (expires_in or timedelta(hours=settings.ACCESS_TOKEN_EXPIRE_HOURS))
    to_encode = {
        "playerId": player_id,
        "unionid": unionid,
        "phone": phone,
        "clubId": club_id,
        "exp": expire,
    }
    return jwt.encode(to_encode, _require_secret(), algorithm=settings.JWT_ALGORITHM)


def decode_player_token(token: str) -> dict:
    """解码球员 JWT，过期与无效分别提示"""
    try:
        return jwt.decode(token, _require_secret(), algorithms=[settings.JWT_ALGORITHM])
    except ExpiredSignatureError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token 已过期，请重新登录"
        )
    except JWTError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token 无效"
        )


async def get_current_player(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> PlayerIdentity:
    """获取当前登录球员"""
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="缺少认证 Token"
        )

    payload = decode_player_token(credentials.credentials)
    player_id = payload.get("playerId")
    if not player_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token 无效"
        )

    return PlayerIdentity(
        player_id=str(player_id),
        club_id=payload.get("clubId") or settings.DEFAULT_CLUB_ID,
        unionid=payload.get("unionid"),
        phone=payload.get("phone"),
    )
