# app/routers/teams.py
from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.orm import Session
from typing import List

from app.database import get_db
from app.models.activity_log import ActivityAction
from app.models.task import Task
from app.models.team import Team
from app.models.user import User
from app.schemas.team import TeamCreate, TeamUpdate, TeamOut, TeamMemberAdd
from app.services.audit_service import AuditService
from app.utils.auth import get_current_user, require_capability
from app.utils.diff import field_changes
from app.utils.permissions import Capability, has_capability

router = APIRouter()


def get_team_or_404(db: Session, team_id: int) -> Team:
    team = db.query(Team).filter(Team.id == team_id).first()
    if not team:
        raise HTTPException(status_code=404, detail="Team not found")
    return team


def load_members(db: Session, user_ids: List[int]) -> List[User]:
    """Fetch team members, rejecting unknown or inactive users"""
    unique_ids = list(dict.fromkeys(user_ids))
    if not unique_ids:
        return []
    members = db.query(User).filter(User.id.in_(unique_ids)).all()
    if len(members) != len(unique_ids):
        raise HTTPException(status_code=400, detail="One or more team members not found")

    inactive_members = [member.name for member in members if not member.is_active]
    if inactive_members:
        raise HTTPException(
            status_code=400,
            detail=f"The following team members are inactive: {', '.join(inactive_members)}"
        )
    return members


def ensure_unique_name(db: Session, name: str, exclude_id: int = None):
    query = db.query(Team).filter(Team.name == name)
    if exclude_id is not None:
        query = query.filter(Team.id != exclude_id)
    if query.first():
        raise HTTPException(status_code=400, detail="Team name already exists")


@router.get("/", response_model=List[TeamOut])
def get_all_teams(db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    """Managers and admins see every team, users see the active teams they belong to"""
    if has_capability(current_user, Capability.MANAGE_TEAMS):
        return db.query(Team).order_by(Team.name).all()

    return (
        db.query(Team)
        .filter(Team.is_active.is_(True), Team.members.any(User.id == current_user.id))
        .order_by(Team.name)
        .all()
    )


@router.get("/{team_id}", response_model=TeamOut)
def get_team(team_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    team = get_team_or_404(db, team_id)
    if not has_capability(current_user, Capability.MANAGE_TEAMS) and current_user not in team.members:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not authorized to view this team")
    return team


@router.post("/", response_model=TeamOut, status_code=status.HTTP_201_CREATED)
def create_team(
    team_data: TeamCreate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_capability(Capability.MANAGE_TEAMS)),
):
    ensure_unique_name(db, team_data.name)
    members = load_members(db, team_data.member_ids)

    db_team = Team(
        name=team_data.name,
        description=team_data.description,
        created_by_id=current_user.id,
        members=members,
    )
    db.add(db_team)
    db.commit()
    db.refresh(db_team)

    AuditService.log_team_operation(
        db, ActivityAction.TEAM_CREATED, current_user.id, db_team.id, request,
        details=f"{team_data.name} ({len(members)} members)",
    )
    return db_team


@router.put("/{team_id}", response_model=TeamOut)
def update_team(
    team_id: int,
    team_data: TeamUpdate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_capability(Capability.MANAGE_TEAMS)),
):
    team = get_team_or_404(db, team_id)
    updates = team_data.model_dump(exclude_unset=True)

    member_ids = updates.pop("member_ids", None)
    if updates.get("name") is not None:
        ensure_unique_name(db, updates["name"], exclude_id=team.id)
    if "is_active" in updates and updates["is_active"] is None:
        updates.pop("is_active")

    changes = field_changes(team, updates)
    if member_ids is not None:
        members = load_members(db, member_ids)
        before = sorted(member.id for member in team.members)
        after = sorted(member.id for member in members)
        if before != after:
            changes["member_ids"] = {"from": before, "to": after}
        team.members = members

    for key, value in updates.items():
        setattr(team, key, value)
    db.commit()
    db.refresh(team)

    if changes:
        AuditService.log_team_operation(
            db, ActivityAction.TEAM_UPDATED, current_user.id, team.id, request, changes=changes
        )
    return team


@router.delete("/{team_id}")
def delete_team(
    team_id: int,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_capability(Capability.MANAGE_TEAMS)),
):
    team = get_team_or_404(db, team_id)
    assigned = db.query(Task).filter(Task.assigned_team_id == team.id).count()
    if assigned:
        raise HTTPException(
            status_code=400,
            detail=f"Team still has {assigned} assigned task(s). Reassign them before deleting the team.",
        )

    name = team.name
    team.members = []
    db.delete(team)
    db.commit()

    AuditService.log_team_operation(
        db, ActivityAction.TEAM_DELETED, current_user.id, team_id, request, details=name
    )
    return {"success": True, "message": "Team deleted successfully"}


@router.post("/{team_id}/members", response_model=TeamOut)
def add_team_members(
    team_id: int,
    payload: TeamMemberAdd,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_capability(Capability.MANAGE_TEAMS)),
):
    team = get_team_or_404(db, team_id)
    new_members = load_members(db, payload.user_ids)

    existing_ids = {member.id for member in team.members}
    added = [member for member in new_members if member.id not in existing_ids]
    if not added:
        raise HTTPException(status_code=400, detail="Users are already members of this team")

    team.members.extend(added)
    db.commit()
    db.refresh(team)

    AuditService.log_team_operation(
        db, ActivityAction.TEAM_MEMBER_ADDED, current_user.id, team.id, request,
        changes={"member_ids": {"from": sorted(existing_ids), "to": sorted(existing_ids | {m.id for m in added})}},
    )
    return team


@router.delete("/{team_id}/members/{user_id}", response_model=TeamOut)
def remove_team_member(
    team_id: int,
    user_id: int,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_capability(Capability.MANAGE_TEAMS)),
):
    team = get_team_or_404(db, team_id)
    member = next((m for m in team.members if m.id == user_id), None)
    if member is None:
        raise HTTPException(status_code=404, detail="User is not a member of this team")

    team.members.remove(member)
    db.commit()
    db.refresh(team)

    AuditService.log_team_operation(
        db, ActivityAction.TEAM_MEMBER_REMOVED, current_user.id, team.id, request,
        details=f"Removed user {user_id}",
    )
    return team
