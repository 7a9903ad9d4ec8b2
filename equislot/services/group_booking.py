"""
Group booking requests: customers gather participants around one provider
visit, and a provider later matches the whole group in a single run.
"""

from __future__ import annotations

import logging
import secrets
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Callable, Dict, List, Optional, Tuple

import pendulum

from ..domain.entities import (
    Booking,
    BookingStatus,
    GroupBookingRequest,
    GroupBookingStatus,
    Participant,
    ParticipantStatus,
)
from ..domain.exceptions import RepositoryError
from ..domain.models import Interval, Location, add_minutes, parse_time
from ..domain.result import ErrorCode, Result, fail, ok
from .ports import (
    BookingRepository,
    GroupBookingRepository,
    NotificationInput,
    NotificationSender,
    NotificationType,
    ProviderRepository,
)

logger = logging.getLogger(__name__)

# No 0/O or 1/I/L so codes can be read out loud
INVITE_CODE_ALPHABET = "ABCDEFGHJKMNPQRSTUVWXYZ23456789"
INVITE_CODE_LENGTH = 8

GROUP_TRANSITIONS: Dict[GroupBookingStatus, Tuple[GroupBookingStatus, ...]] = {
    GroupBookingStatus.OPEN: (GroupBookingStatus.MATCHED, GroupBookingStatus.CANCELLED),
    GroupBookingStatus.MATCHED: (GroupBookingStatus.COMPLETED,),
    GroupBookingStatus.COMPLETED: (),
    GroupBookingStatus.CANCELLED: (),
}


def generate_invite_code(length: int = INVITE_CODE_LENGTH) -> str:
    return "".join(secrets.choice(INVITE_CODE_ALPHABET) for _ in range(length))


def sequence_slots(start_time: str, duration_minutes: int, count: int) -> List[Interval]:
    """
    Back-to-back intervals for ``count`` participants.

    The k-th interval is ``[start + k*duration, start + (k+1)*duration)``.
    """
    if duration_minutes <= 0:
        raise ValueError("duration_minutes must be greater than zero")

    intervals: List[Interval] = []
    cursor = start_time
    for _ in range(count):
        end = add_minutes(cursor, duration_minutes)
        intervals.append(Interval(cursor, end))
        cursor = end
    return intervals


@dataclass
class CreateGroupRequestInput:
    user_id: str
    service_type: str
    location_name: str
    address: str
    date_from: date
    date_to: date
    max_participants: int
    provider_id: Optional[str] = None
    location: Optional[Location] = None
    join_deadline: Optional[datetime] = None
    notes: Optional[str] = None
    number_of_entities: int = 1
    entity_id: Optional[str] = None
    entity_name: Optional[str] = None


@dataclass
class JoinGroupInput:
    user_id: str
    invite_code: str
    number_of_entities: int = 1
    entity_id: Optional[str] = None
    entity_name: Optional[str] = None
    notes: Optional[str] = None


@dataclass
class UpdateGroupRequestInput:
    group_id: str
    user_id: str
    notes: Optional[str] = None
    max_participants: Optional[int] = None
    join_deadline: Optional[datetime] = None
    status: Optional[GroupBookingStatus] = None


@dataclass
class MatchRequestInput:
    group_booking_request_id: str
    provider_id: str
    service_id: str
    booking_date: date
    start_time: str
    service_duration_minutes: Optional[int] = None


@dataclass
class MatchResult:
    bookings_created: int
    errors: List[str] = field(default_factory=list)
    booking_ids: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class GroupBookingPreview:
    """What an invitee sees before joining."""
    service_type: str
    location_name: str
    address: str
    date_from: date
    date_to: date
    max_participants: int
    current_participants: int
    join_deadline: Optional[datetime]
    notes: Optional[str]
    status: GroupBookingStatus


class GroupBookingService:
    """Creates, joins, edits and matches group booking requests."""

    def __init__(
        self,
        *,
        groups: GroupBookingRepository,
        bookings: BookingRepository,
        providers: ProviderRepository,
        notification_sender: Optional[NotificationSender] = None,
        invite_code_factory: Callable[[], str] = generate_invite_code,
        id_factory: Callable[[], str] = lambda: str(uuid.uuid4()),
        clock: Callable[[], datetime] = lambda: pendulum.now("UTC"),
    ) -> None:
        self._groups = groups
        self._bookings = bookings
        self._providers = providers
        self._notification_sender = notification_sender
        self._invite_code_factory = invite_code_factory
        self._id_factory = id_factory
        self._clock = clock

    async def create_request(self, data: CreateGroupRequestInput) -> Result:
        """Open a new request with the creator as its first participant."""
        if data.max_participants < 1:
            return fail(ErrorCode.INVALID_INPUT, "A group needs room for at least one participant")
        if data.date_from > data.date_to:
            return fail(ErrorCode.INVALID_INPUT, "date_from must not be after date_to")

        now = self._clock()
        group = GroupBookingRequest(
            id=self._id_factory(),
            creator_id=data.user_id,
            service_type=data.service_type,
            location_name=data.location_name,
            address=data.address,
            date_from=data.date_from,
            date_to=data.date_to,
            max_participants=data.max_participants,
            invite_code=self._invite_code_factory(),
            provider_id=data.provider_id,
            location=data.location,
            join_deadline=data.join_deadline,
            notes=data.notes,
            created_at=now,
            participants=[
                Participant(
                    id=self._id_factory(),
                    user_id=data.user_id,
                    number_of_entities=data.number_of_entities,
                    entity_id=data.entity_id,
                    entity_name=data.entity_name,
                    joined_at=now,
                )
            ],
        )
        await self._groups.save(group)

        logger.info(
            "Group booking request created",
            extra={"group_id": group.id, "creator_id": data.user_id},
        )
        return ok(group)

    async def list_for_user(self, user_id: str) -> Result:
        return ok(await self._groups.list_for_user(user_id))

    async def get_preview_by_code(self, invite_code: str) -> Result:
        group = await self._groups.get_by_invite_code(invite_code)
        if group is None:
            return fail(ErrorCode.GROUP_BOOKING_NOT_FOUND, "Invalid invite code")

        return ok(
            GroupBookingPreview(
                service_type=group.service_type,
                location_name=group.location_name,
                address=group.address,
                date_from=group.date_from,
                date_to=group.date_to,
                max_participants=group.max_participants,
                current_participants=len(group.active_participants()),
                join_deadline=group.join_deadline,
                notes=group.notes,
                status=group.status,
            )
        )

    async def join_by_invite_code(self, data: JoinGroupInput) -> Result:
        group = await self._groups.get_by_invite_code(data.invite_code)
        if group is None:
            return fail(ErrorCode.GROUP_BOOKING_NOT_FOUND, "Invalid invite code")
        if group.status != GroupBookingStatus.OPEN:
            return fail(ErrorCode.GROUP_NOT_OPEN, "The group is no longer open for new participants")
        if len(group.active_participants()) >= group.max_participants:
            return fail(ErrorCode.GROUP_FULL, "The group is full")

        now = self._clock()
        if group.join_deadline is not None and now > _aware(group.join_deadline):
            return fail(ErrorCode.JOIN_DEADLINE_PASSED, "The join deadline has passed")
        if group.has_active_user(data.user_id):
            return fail(ErrorCode.ALREADY_JOINED, "You have already joined this group")

        participant = Participant(
            id=self._id_factory(),
            user_id=data.user_id,
            number_of_entities=data.number_of_entities,
            entity_id=data.entity_id,
            entity_name=data.entity_name,
            notes=data.notes,
            joined_at=now,
        )
        group.participants.append(participant)
        await self._groups.save(group)

        await self._notify(
            NotificationInput(
                user_id=group.creator_id,
                type=NotificationType.GROUP_BOOKING_JOINED,
                message=f"A new participant joined your group request for {group.service_type}",
                link_url=f"/customer/group-bookings/{group.id}",
                metadata={"group_booking_id": group.id},
            )
        )

        logger.info(
            "User joined group booking",
            extra={"group_id": group.id, "user_id": data.user_id},
        )
        return ok(participant)

    async def remove_participant(self, group_id: str, participant_id: str, user_id: str) -> Result:
        """
        Remove a participant; allowed for the participant themselves or the
        group's creator. The group is cancelled once nobody active is left.
        """
        group = await self._groups.get(group_id)
        participant = group.find_participant(participant_id) if group else None
        if (
            participant is None
            or not participant.is_active
            or user_id not in (participant.user_id, group.creator_id)
        ):
            return fail(
                ErrorCode.PARTICIPANT_NOT_FOUND,
                "Participant not found or you are not allowed to remove them",
            )

        participant.status = ParticipantStatus.REMOVED
        auto_cancelled = False
        if not group.active_participants() and group.status in (
            GroupBookingStatus.OPEN,
            GroupBookingStatus.MATCHED,
        ):
            group.status = GroupBookingStatus.CANCELLED
            auto_cancelled = True
        await self._groups.save(group)

        if auto_cancelled:
            logger.info("Group booking auto-cancelled (no participants)", extra={"group_id": group.id})

        if participant.user_id != user_id and participant.user_id != group.creator_id:
            await self._notify(
                NotificationInput(
                    user_id=participant.user_id,
                    type=NotificationType.GROUP_BOOKING_LEFT,
                    message=f"You have been removed from the group request for {group.service_type}",
                    link_url="/customer/group-bookings",
                    metadata={"group_booking_id": group.id},
                )
            )
        elif participant.user_id == user_id and user_id != group.creator_id:
            await self._notify(
                NotificationInput(
                    user_id=group.creator_id,
                    type=NotificationType.GROUP_BOOKING_LEFT,
                    message=f"A participant left your group request for {group.service_type}",
                    link_url=f"/customer/group-bookings/{group.id}",
                    metadata={"group_booking_id": group.id},
                )
            )

        logger.info(
            "Participant removed from group booking",
            extra={"group_id": group.id, "participant_id": participant_id, "removed_by": user_id},
        )
        return ok(group)

    async def update_request(self, data: UpdateGroupRequestInput) -> Result:
        """Creator-only edit of notes, capacity, deadline and status."""
        group = await self._groups.get(data.group_id)
        if group is None or group.creator_id != data.user_id:
            return fail(
                ErrorCode.GROUP_BOOKING_NOT_FOUND,
                "Group booking request not found or you are not its creator",
            )

        if data.status is not None and data.status not in GROUP_TRANSITIONS[group.status]:
            return fail(
                ErrorCode.INVALID_STATUS_TRANSITION,
                f"Cannot change status from {group.status.value} to {data.status.value}",
                from_status=group.status.value,
                to_status=data.status.value,
            )
        if data.max_participants is not None and data.max_participants < len(group.active_participants()):
            return fail(
                ErrorCode.INVALID_INPUT,
                "max_participants cannot be lower than the current number of participants",
            )

        if data.notes is not None:
            group.notes = data.notes
        if data.max_participants is not None:
            group.max_participants = data.max_participants
        if data.join_deadline is not None:
            group.join_deadline = data.join_deadline
        if data.status is not None:
            group.status = data.status
        await self._groups.save(group)

        if data.status == GroupBookingStatus.CANCELLED:
            for participant in group.active_participants():
                if participant.user_id == data.user_id:
                    continue
                await self._notify(
                    NotificationInput(
                        user_id=participant.user_id,
                        type=NotificationType.GROUP_BOOKING_CANCELLED,
                        message=f"The group request for {group.service_type} has been cancelled",
                        link_url="/customer/group-bookings",
                        metadata={"group_booking_id": group.id},
                    )
                )

        logger.info("Group booking updated", extra={"group_id": group.id})
        return ok(group)

    async def match_request(self, data: MatchRequestInput) -> Result:
        """
        Book every joined participant back to back with one provider.

        Bookings are created in one transaction. A participant whose booking
        cannot be created is reported in ``errors`` and does not stop the
        others. With at least one booking the group becomes ``matched``.
        """
        group = await self._groups.get(data.group_booking_request_id)
        if group is None or group.status != GroupBookingStatus.OPEN:
            return fail(
                ErrorCode.GROUP_BOOKING_NOT_FOUND,
                "Group booking request not found or not open",
            )

        joined = group.joined_participants()
        if not joined:
            return fail(ErrorCode.NO_ACTIVE_PARTICIPANTS, "The group has no active participants")

        service = await self._providers.get_service(data.service_id)
        if service is None or service.provider_id != data.provider_id:
            return fail(ErrorCode.NOT_FOUND, "Service not found")

        duration = data.service_duration_minutes or service.duration_minutes
        try:
            parse_time(data.start_time)
            plan = sequence_slots(data.start_time, duration, len(joined))
        except ValueError as exc:
            return fail(ErrorCode.INVALID_TIMES, str(exc))

        result = MatchResult(bookings_created=0)
        async with self._bookings.transaction():
            taken = [b.interval for b in await self._bookings.list_for_provider_on(data.provider_id, data.booking_date)]

            for index, (participant, interval) in enumerate(zip(joined, plan), start=1):
                if any(interval.overlaps(existing) for existing in taken):
                    result.errors.append(
                        f"Failed to create booking {index}: provider already booked at {interval}"
                    )
                    continue

                booking = Booking(
                    id=self._id_factory(),
                    customer_id=participant.user_id,
                    provider_id=data.provider_id,
                    service_id=data.service_id,
                    booking_date=data.booking_date,
                    start_time=interval.start_time,
                    end_time=interval.end_time,
                    status=BookingStatus.CONFIRMED,
                    entity_id=participant.entity_id,
                    entity_name=participant.entity_name,
                    customer_notes=participant.notes,
                    location=group.location,
                    created_at=self._clock(),
                )
                try:
                    await self._bookings.save(booking)
                except RepositoryError as exc:
                    message = f"Failed to create booking {index}: {exc}"
                    logger.error(message, extra={"group_id": group.id, "participant_id": participant.id})
                    result.errors.append(message)
                    continue

                taken.append(interval)
                participant.status = ParticipantStatus.BOOKED
                participant.booking_id = booking.id
                result.booking_ids.append(booking.id)
                result.bookings_created += 1

            if result.bookings_created:
                group.status = GroupBookingStatus.MATCHED
                group.provider_id = data.provider_id
            await self._groups.save(group)

        if result.bookings_created:
            for participant in joined:
                await self._notify(
                    NotificationInput(
                        user_id=participant.user_id,
                        type=NotificationType.GROUP_BOOKING_MATCHED,
                        message=f"Your group request for {group.service_type} has been matched with a provider!",
                        link_url="/customer/bookings",
                        metadata={"group_booking_id": group.id},
                    )
                )

        logger.info(
            "Group booking matched",
            extra={
                "group_id": group.id,
                "provider_id": data.provider_id,
                "bookings_created": result.bookings_created,
                "errors": len(result.errors),
            },
        )
        return ok(result)

    async def _notify(self, notification: NotificationInput) -> None:
        if self._notification_sender is None:
            return
        try:
            await self._notification_sender.create(notification)
        except Exception:
            logger.exception(
                "Group booking notification failed",
                extra={"user_id": notification.user_id, "type": notification.type.value},
            )


def _aware(value: datetime) -> datetime:
    # naive deadlines are read as UTC
    return pendulum.instance(value, tz="UTC")
