from fastapi import APIRouter, HTTPException, Depends, Request, Response
from fastapi.security import OAuth2PasswordRequestForm
from typing import List
import logging

from database import get_db
from models import (
    User, UserCreate, UserUpdate, ProfileUpdate, UserResponse, TokenResponse,
    UserRole, UserStatus, permissions_for_role, utc_now, to_iso, to_document
)
from models.audit import AuditAction, AuditModule
from services import (
    get_current_user, hash_password, verify_password, create_access_token, TOKEN_COOKIE
)
from services.audit_service import AuditService, audit_update, audit_delete
from middleware import ManageUsers
from config import get_settings

logger = logging.getLogger(__name__)

auth_router = APIRouter(prefix="/auth", tags=["Authentication"])
router = APIRouter(prefix="/users", tags=["Users"])

USER_PROJECTION = {"_id": 0, "password_hash": 0}


# ============ AUTHENTICATION ============

@auth_router.post("/login", response_model=TokenResponse)
async def login(
    request: Request,
    response: Response,
    form: OAuth2PasswordRequestForm = Depends(),
    db=Depends(get_db)
):
    email = form.username.lower()
    user = await db.users.find_one({"email": email}, {"_id": 0})
    if not user or not verify_password(form.password, user["password_hash"]):
        logger.info("Failed login for %s", email)
        await AuditService.log(
            db, AuditAction.LOGIN_FAILED, AuditModule.AUTH,
            description=f"Failed login for {email}", request=request
        )
        raise HTTPException(status_code=401, detail="Invalid email or password")
    if user.get("status") != UserStatus.ACTIVE.value:
        raise HTTPException(status_code=403, detail="Account is not active")

    token = create_access_token(user["id"], user["role"])
    await db.users.update_one({"id": user["id"]}, {"$set": {"last_login": to_iso(utc_now())}})
    await AuditService.log(db, AuditAction.LOGIN, AuditModule.AUTH, user, record_id=user["id"], request=request)

    response.set_cookie(
        TOKEN_COOKIE, token,
        httponly=True,
        samesite="lax",
        max_age=get_settings().access_token_expire_minutes * 60,
    )
    return {"access_token": token, "token_type": "bearer", "user": user}


@auth_router.post("/logout")
async def logout(response: Response):
    response.delete_cookie(TOKEN_COOKIE)
    return {"status": "success"}


@auth_router.post("/register", response_model=UserResponse)
async def register(data: UserCreate, request: Request, db=Depends(get_db)):
    email = data.email.lower()
    if await db.users.find_one({"email": email}, {"_id": 1}):
        raise HTTPException(status_code=400, detail="Email already registered")

    # The first account bootstraps the system as admin
    role = UserRole.ADMIN if await db.users.count_documents({}) == 0 else UserRole.STAFF
    user = User(
        email=email,
        password_hash=hash_password(data.password),
        name=data.name,
        role=role,
        department=data.department,
        contact_number=data.contact_number,
        permissions=permissions_for_role(role),
    )
    doc = to_document(user.model_dump())
    await db.users.insert_one(doc)
    doc.pop("_id", None)

    logger.info("User %s registered as %s", email, role.value)
    await AuditService.log(db, AuditAction.REGISTER, AuditModule.AUTH, doc, record_id=user.id, request=request)
    return doc


@auth_router.get("/me", response_model=UserResponse)
async def get_me(current_user: dict = Depends(get_current_user)):
    return current_user


# ============ USER ADMINISTRATION ============

@router.get("", response_model=List[UserResponse])
async def get_users(db=Depends(get_db), current_user: dict = Depends(ManageUsers)):
    users = await db.users.find({}, USER_PROJECTION).sort("email", 1).to_list(None)
    return users


@router.put("/profile", response_model=UserResponse)
async def update_profile(data: ProfileUpdate, db=Depends(get_db), current_user: dict = Depends(get_current_user)):
    updates = data.model_dump(exclude_unset=True)
    if not updates:
        raise HTTPException(status_code=400, detail="No fields to update")
    updates["updated_at"] = to_iso(utc_now())
    await db.users.update_one({"id": current_user["id"]}, {"$set": updates})
    return await db.users.find_one({"id": current_user["id"]}, USER_PROJECTION)


@router.get("/{user_id}", response_model=UserResponse)
async def get_user(user_id: str, db=Depends(get_db), current_user: dict = Depends(ManageUsers)):
    user = await db.users.find_one({"id": user_id}, USER_PROJECTION)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user


@router.put("/{user_id}", response_model=UserResponse)
async def update_user(user_id: str, data: UserUpdate, db=Depends(get_db), current_user: dict = Depends(ManageUsers)):
    user = await db.users.find_one({"id": user_id}, USER_PROJECTION)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")

    updates = to_document(data.model_dump(exclude_unset=True))
    if not updates:
        raise HTTPException(status_code=400, detail="No fields to update")
    if "role" in updates:
        updates["permissions"] = permissions_for_role(updates["role"])
    if "password" in updates:
        updates["password_hash"] = hash_password(updates.pop("password"))
    updates["updated_at"] = to_iso(utc_now())

    await db.users.update_one({"id": user_id}, {"$set": updates})
    await audit_update(
        db, AuditModule.USERS, current_user, user_id, "user",
        old_values={k: user.get(k) for k in updates if k not in ("updated_at", "password_hash")},
        new_values=updates,
    )
    return await db.users.find_one({"id": user_id}, USER_PROJECTION)


@router.delete("/{user_id}")
async def delete_user(user_id: str, db=Depends(get_db), current_user: dict = Depends(ManageUsers)):
    if user_id == current_user["id"]:
        raise HTTPException(status_code=400, detail="You cannot delete your own account")

    result = await db.users.delete_one({"id": user_id})
    if result.deleted_count == 0:
        raise HTTPException(status_code=404, detail="User not found")
    await audit_delete(db, AuditModule.USERS, current_user, user_id, "user")
    return {"status": "success"}
