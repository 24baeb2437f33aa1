from typing import Literal, Optional
from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlmodel import Session

from ..database import get_session
from ..dependencies import get_allow_live_predictions
from ..services.groups import (
    create_group,
    get_group,
    group_to_dict,
    join_group,
    leave_group,
    list_user_groups,
)
from ..services.leaderboard import get_leaderboard, get_user_group_stats
from ..services.predictions import list_group_predictions, prediction_to_dict, submit_prediction

router = APIRouter(prefix="/api/groups", tags=["groups"])


class GroupCreate(BaseModel):
    name: str
    description: str = ""
    created_by: int


class GroupJoin(BaseModel):
    user_id: int
    invite_code: str = Field(alias="inviteCode")

    model_config = {"populate_by_name": True}


class GroupLeave(BaseModel):
    user_id: int


class PredictionCreate(BaseModel):
    user_id: int
    predicted_winner: Literal["team_a", "team_b"]
    predicted_score_a: Optional[int] = None
    predicted_score_b: Optional[int] = None


@router.post("", status_code=201)
async def add_group(
    group_data: GroupCreate,
    db: Session = Depends(get_session)
):
    group = create_group(db, group_data.name, group_data.created_by, group_data.description)
    return {"group": group_to_dict(db, group)}


@router.get("")
async def read_user_groups(
    user_id: int,
    db: Session = Depends(get_session)
):
    return {"groups": list_user_groups(db, user_id), "userId": user_id}


@router.get("/{group_id}")
async def read_group(
    group_id: int,
    db: Session = Depends(get_session)
):
    return {"group": group_to_dict(db, get_group(db, group_id))}


@router.post("/{group_id}/join")
async def join(
    group_id: int,
    join_data: GroupJoin,
    db: Session = Depends(get_session)
):
    join_group(db, group_id, join_data.user_id, join_data.invite_code)
    return {
        "message": "Successfully joined group",
        "userId": join_data.user_id,
        "groupId": group_id
    }


@router.post("/{group_id}/leave")
async def leave(
    group_id: int,
    leave_data: GroupLeave,
    db: Session = Depends(get_session)
):
    leave_group(db, group_id, leave_data.user_id)
    return {
        "message": "Successfully left group",
        "userId": leave_data.user_id,
        "groupId": group_id
    }


@router.get("/{group_id}/leaderboard")
async def group_leaderboard(
    group_id: int,
    db: Session = Depends(get_session)
):
    return {"group_id": group_id, "leaderboard": get_leaderboard(db, group_id)}


@router.get("/{group_id}/users/{user_id}/stats")
async def user_stats(
    group_id: int,
    user_id: int,
    db: Session = Depends(get_session)
):
    return get_user_group_stats(db, user_id, group_id)


@router.get("/{group_id}/predictions")
async def group_predictions(
    group_id: int,
    db: Session = Depends(get_session)
):
    predictions = list_group_predictions(db, group_id)
    return {"predictions": [prediction_to_dict(p) for p in predictions], "groupId": group_id}


@router.get("/{group_id}/matches/{match_id}/predictions")
async def match_predictions(
    group_id: int,
    match_id: int,
    db: Session = Depends(get_session)
):
    predictions = list_group_predictions(db, group_id, match_id)
    return {
        "predictions": [prediction_to_dict(p) for p in predictions],
        "groupId": group_id,
        "matchId": match_id
    }


@router.post("/{group_id}/matches/{match_id}/predict", status_code=201)
async def predict(
    group_id: int,
    match_id: int,
    prediction_data: PredictionCreate,
    allow_live: bool = Depends(get_allow_live_predictions),
    db: Session = Depends(get_session)
):
    prediction = submit_prediction(
        db,
        user_id=prediction_data.user_id,
        group_id=group_id,
        match_id=match_id,
        predicted_winner=prediction_data.predicted_winner,
        predicted_score_a=prediction_data.predicted_score_a,
        predicted_score_b=prediction_data.predicted_score_b,
        allow_live=allow_live
    )
    return {"prediction": prediction_to_dict(prediction)}
