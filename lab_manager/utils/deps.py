from fastapi import Depends
from sqlalchemy.orm import Session

from lab_manager.config import settings
from lab_manager.database import get_db
from lab_manager.services.conflict_checker import ScheduleConflictChecker
from lab_manager.services.group_assignor import AssignmentFailure, AssignmentResult, AssignmentSuccess, GroupAssignor
from lab_manager.storage import Storage


def get_storage(db: Session = Depends(get_db)) -> Storage:
    return Storage(db)


def get_checker(storage: Storage = Depends(get_storage)) -> ScheduleConflictChecker:
    return ScheduleConflictChecker(storage)


def get_assignor(storage: Storage = Depends(get_storage)) -> GroupAssignor:
    return GroupAssignor(storage, default_max_members=settings.DEFAULT_MAX_MEMBERS)


def unwrap(result: AssignmentResult) -> AssignmentSuccess:
    # failures go to the AppError handler in main.py
    if isinstance(result, AssignmentFailure):
        raise result.error
    return result
