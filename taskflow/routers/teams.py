from __future__ import annotations

from datetime import timedelta

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from taskflow.access import require_team_admin, require_team_member
from taskflow.audit import write_audit
from taskflow.config import settings
from taskflow.deps import get_current_user, get_db
from taskflow.models import AuditLog, Invitation, Project, ProjectMember, Team, TeamMember, User, as_utc, utcnow
from taskflow.schemas import (
  AuditOut,
  InvitationCreateIn,
  InvitationOut,
  TeamCreateIn,
  TeamMemberAddIn,
  TeamMemberOut,
  TeamMemberRoleIn,
  TeamOut,
)
from taskflow.security import invitation_token_hash, invitation_token_new

router = APIRouter(tags=["teams"])


def _invitation_out(inv: Invitation, token: str | None = None) -> InvitationOut:
  return InvitationOut(
    id=inv.id,
    teamId=inv.team_id,
    email=inv.email,
    role=inv.role,
    expiresAt=as_utc(inv.expires_at),
    acceptedAt=as_utc(inv.accepted_at),
    token=token,
  )


def _audit_out(ev: AuditLog) -> AuditOut:
  return AuditOut(
    id=ev.id,
    teamId=ev.team_id,
    projectId=ev.project_id,
    actorUserId=ev.actor_user_id,
    action=ev.action,
    targetType=ev.target_type,
    targetId=ev.target_id,
    metadata=ev.meta or {},
    createdAt=ev.created_at,
  )


async def _admin_count(db: AsyncSession, team_id: str) -> int:
  res = await db.execute(
    select(func.count()).select_from(TeamMember).where(TeamMember.team_id == team_id, TeamMember.role == "admin")
  )
  return int(res.scalar_one() or 0)


@router.get("/teams", response_model=list[TeamOut])
async def list_teams(user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> list[TeamOut]:
  res = await db.execute(
    select(Team, TeamMember.role)
    .join(TeamMember, TeamMember.team_id == Team.id)
    .where(TeamMember.user_id == user.id)
    .order_by(Team.created_at.asc())
  )
  return [TeamOut(id=t.id, name=t.name, role=role, createdAt=t.created_at) for t, role in res.all()]


@router.post("/teams", response_model=TeamOut)
async def create_team(payload: TeamCreateIn, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> TeamOut:
  t = Team(name=payload.name, created_by=user.id)
  db.add(t)
  await db.flush()
  db.add(TeamMember(team_id=t.id, user_id=user.id, role="admin"))
  await write_audit(db, team_id=t.id, action="team.created", target_type="team", target_id=t.id, actor_id=user.id, metadata={"name": t.name})
  await db.commit()
  return TeamOut(id=t.id, name=t.name, role="admin", createdAt=t.created_at)


@router.get("/teams/{team_id}/members", response_model=list[TeamMemberOut])
async def list_team_members(team_id: str, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> list[TeamMemberOut]:
  await require_team_member(team_id, user, db)
  res = await db.execute(
    select(TeamMember, User)
    .join(User, User.id == TeamMember.user_id)
    .where(TeamMember.team_id == team_id)
    .order_by(User.display_name.asc())
  )
  return [TeamMemberOut(userId=u.id, email=u.email, displayName=u.display_name, role=m.role) for m, u in res.all()]


@router.post("/teams/{team_id}/members", response_model=TeamMemberOut)
async def add_team_member(
  team_id: str,
  payload: TeamMemberAddIn,
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> TeamMemberOut:
  await require_team_admin(team_id, user, db)
  ures = await db.execute(select(User).where(User.email == payload.email.strip().lower()))
  u = ures.scalar_one_or_none()
  if not u:
    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
  exists = await db.execute(select(TeamMember.id).where(TeamMember.team_id == team_id, TeamMember.user_id == u.id))
  if exists.scalar_one_or_none():
    raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Already a team member")

  db.add(TeamMember(team_id=team_id, user_id=u.id, role=payload.role))
  await write_audit(
    db,
    team_id=team_id,
    action="team.member_added",
    target_type="user",
    target_id=u.id,
    actor_id=user.id,
    metadata={"role": payload.role},
  )
  await db.commit()
  return TeamMemberOut(userId=u.id, email=u.email, displayName=u.display_name, role=payload.role)


@router.patch("/teams/{team_id}/members/{user_id}", response_model=TeamMemberOut)
async def update_team_member_role(
  team_id: str,
  user_id: str,
  payload: TeamMemberRoleIn,
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> TeamMemberOut:
  await require_team_admin(team_id, user, db)
  res = await db.execute(
    select(TeamMember, User).join(User, User.id == TeamMember.user_id).where(TeamMember.team_id == team_id, TeamMember.user_id == user_id)
  )
  row = res.first()
  if not row:
    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Team member not found")
  m, u = row
  if m.role == "admin" and payload.role != "admin" and await _admin_count(db, team_id) <= 1:
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Team must keep at least one admin")

  old_role = m.role
  m.role = payload.role
  await write_audit(
    db,
    team_id=team_id,
    action="team.member_role_changed",
    target_type="user",
    target_id=u.id,
    actor_id=user.id,
    metadata={"from": old_role, "to": payload.role},
  )
  await db.commit()
  return TeamMemberOut(userId=u.id, email=u.email, displayName=u.display_name, role=m.role)


@router.delete("/teams/{team_id}/members/{user_id}")
async def remove_team_member(
  team_id: str,
  user_id: str,
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> dict:
  await require_team_admin(team_id, user, db)
  if user_id == user.id:
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="You cannot remove yourself")
  res = await db.execute(select(TeamMember).where(TeamMember.team_id == team_id, TeamMember.user_id == user_id))
  m = res.scalar_one_or_none()
  if not m:
    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Team member not found")

  # project rows would otherwise keep board access alive
  team_projects = select(Project.id).where(Project.team_id == team_id)
  await db.execute(delete(ProjectMember).where(ProjectMember.user_id == user_id, ProjectMember.project_id.in_(team_projects)))
  await db.delete(m)
  await write_audit(
    db,
    team_id=team_id,
    action="team.member_removed",
    target_type="team_member",
    target_id=user_id,
    actor_id=user.id,
    metadata={"role": m.role},
  )
  await db.commit()
  return {"ok": True}


@router.post("/teams/{team_id}/invitations", response_model=InvitationOut)
async def create_invitation(
  team_id: str,
  payload: InvitationCreateIn,
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> InvitationOut:
  await require_team_admin(team_id, user, db)
  email = payload.email.strip().lower()
  if "@" not in email:
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid email")

  token = invitation_token_new()
  inv = Invitation(
    team_id=team_id,
    email=email,
    role=payload.role,
    token_hash=invitation_token_hash(token),
    invited_by=user.id,
    expires_at=utcnow() + timedelta(days=int(settings.invitation_ttl_days)),
  )
  db.add(inv)
  await db.flush()
  await write_audit(
    db,
    team_id=team_id,
    action="invitation.created",
    target_type="invitation",
    target_id=inv.id,
    actor_id=user.id,
    metadata={"email": email, "role": payload.role},
  )
  await db.commit()
  # The raw token is only ever returned here; delivery is handled outside the API.
  return _invitation_out(inv, token=token)


@router.post("/invitations/{token}/accept", response_model=TeamOut)
async def accept_invitation(token: str, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> TeamOut:
  res = await db.execute(select(Invitation).where(Invitation.token_hash == invitation_token_hash(token)))
  inv = res.scalar_one_or_none()
  if not inv:
    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Invitation not found")
  if inv.accepted_at is not None or as_utc(inv.expires_at) <= utcnow():
    raise HTTPException(status_code=status.HTTP_410_GONE, detail="Invitation expired")
  if inv.email != user.email.lower():
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Invitation is for a different email")

  tres = await db.execute(select(Team).where(Team.id == inv.team_id))
  t = tres.scalar_one()
  mres = await db.execute(select(TeamMember).where(TeamMember.team_id == inv.team_id, TeamMember.user_id == user.id))
  m = mres.scalar_one_or_none()
  if m is None:
    m = TeamMember(team_id=inv.team_id, user_id=user.id, role=inv.role)
    db.add(m)

  inv.accepted_at = utcnow()
  inv.accepted_by = user.id
  await write_audit(
    db,
    team_id=inv.team_id,
    action="invitation.accepted",
    target_type="invitation",
    target_id=inv.id,
    actor_id=user.id,
    metadata={"role": m.role},
  )
  await db.commit()
  return TeamOut(id=t.id, name=t.name, role=m.role, createdAt=t.created_at)


@router.get("/teams/{team_id}/audit", response_model=list[AuditOut])
async def list_team_audit(
  team_id: str,
  projectId: str | None = None,
  limit: int = 200,
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> list[AuditOut]:
  await require_team_admin(team_id, user, db)
  q = select(AuditLog).where(AuditLog.team_id == team_id).order_by(AuditLog.created_at.desc()).limit(max(1, min(500, int(limit))))
  if projectId:
    q = q.where(AuditLog.project_id == projectId)
  res = await db.execute(q)
  return [_audit_out(ev) for ev in res.scalars().all()]
