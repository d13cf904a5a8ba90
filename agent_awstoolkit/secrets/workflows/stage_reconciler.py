"""Reconcile stage labels on a secret version against a desired set.

Secrets Manager only lets AWSCURRENT move between versions; it can never be
detached outright. Adding AWSCURRENT therefore needs the version that holds
it today, which is found by scanning the version history, and the label is
moved from that version in the same call. The demoted version is where the
store parks labels removed afterwards in the same reconciliation.
"""
import logging
from typing import Iterable, Optional

from botocore.exceptions import BotoCoreError, ClientError

from ..domains.aws_client import AWSSecretClient, is_gone_error
from ..domains.models import AWSCURRENT, StagePlan

logger = logging.getLogger(__name__)


class StageUpdateError(Exception):
    """Raised when a stage label cannot be moved on a secret."""

    def __init__(self, secret_id: str, stage: str, cause: Exception):
        super().__init__(
            f"error updating Secrets Manager Secret \"{secret_id}\" Version Stage \"{stage}\": {cause}"
        )
        self.secret_id = secret_id
        self.stage = stage
        self.cause = cause


def plan_stage_changes(observed: Optional[Iterable[str]], desired: Optional[Iterable[str]]) -> StagePlan:
    """
    Compute the labels to add and remove to go from ``observed`` to ``desired``.

    Pure function; results are sorted so repeated runs issue calls in the
    same order.
    """
    observed_set = set(observed or ())
    desired_set = set(desired or ())
    return StagePlan(
        to_add=tuple(sorted(desired_set - observed_set)),
        to_remove=tuple(sorted(observed_set - desired_set)),
    )


def find_current_version_id(client: AWSSecretClient, secret_id: str) -> Optional[str]:
    """
    Return the ID of the version holding AWSCURRENT, or None if none does.

    Pages through the version history and stops at the first match; the
    store keeps AWSCURRENT on a single version, so later pages are never
    requested once it is found.
    """
    next_token = None
    while True:
        output = client.list_secret_version_ids(secret_id, next_token=next_token)
        for version in output.get("Versions") or []:
            if AWSCURRENT in (version.get("VersionStages") or []):
                return version["VersionId"]

        next_token = output.get("NextToken")
        if not next_token:
            return None


def apply_stage_changes(client: AWSSecretClient, secret_id: str, version_id: str, plan: StagePlan) -> None:
    """
    Apply a stage plan to ``version_id``.

    Raises:
        StageUpdateError: On the first failed remote call. Nothing is rolled
            back; running the same reconciliation again converges.
    """
    current_holder: Optional[str] = None
    current_located = False
    # Labels removed below are detached from here: the version under
    # reconciliation, or the former AWSCURRENT holder once it is demoted.
    previous_holder = version_id

    for stage in plan.to_add:
        remove_from = None

        if stage == AWSCURRENT:
            if not current_located:
                try:
                    current_holder = find_current_version_id(client, secret_id)
                except (ClientError, BotoCoreError) as e:
                    raise StageUpdateError(secret_id, stage, e) from e
                current_located = True

            if current_holder is None:
                logger.warning(f"No version of secret {secret_id!r} holds {AWSCURRENT}; attaching it to {version_id!r}")
            elif current_holder != version_id:
                remove_from = current_holder
                logger.debug(
                    f"Going to move {AWSCURRENT} staging label for secret {secret_id!r} "
                    f"from version {current_holder!r} to version {version_id!r}"
                )

        try:
            client.update_secret_version_stage(secret_id, stage, move_to=version_id, remove_from=remove_from)
        except (ClientError, BotoCoreError) as e:
            raise StageUpdateError(secret_id, stage, e) from e

        if remove_from is not None:
            previous_holder = remove_from

    for stage in plan.to_remove:
        if stage == AWSCURRENT:
            logger.info(f"Skipping removal of {AWSCURRENT} staging label for secret {secret_id!r} version {version_id!r}")
            continue

        try:
            client.update_secret_version_stage(secret_id, stage, remove_from=previous_holder)
        except (ClientError, BotoCoreError) as e:
            raise StageUpdateError(secret_id, stage, e) from e


def reconcile_version_stages(
    client: AWSSecretClient,
    secret_id: str,
    version_id: str,
    observed: Optional[Iterable[str]],
    desired: Optional[Iterable[str]],
) -> StagePlan:
    """Plan and apply the label changes for one version; returns the applied plan."""
    plan = plan_stage_changes(observed, desired)
    if plan.is_empty:
        logger.debug(f"Stages of secret {secret_id!r} version {version_id!r} already up to date")
        return plan

    apply_stage_changes(client, secret_id, version_id, plan)
    return plan


def remove_version_stages(client: AWSSecretClient, secret_id: str, version_id: str, stages: Iterable[str]) -> None:
    """
    Detach every label from a version that is being deleted.

    AWSCURRENT stays where it is: there is no version to move it to. If the
    secret or version is already gone the deletion is complete.

    Raises:
        StageUpdateError: On any other failed remote call
    """
    for stage in sorted(set(stages)):
        if stage == AWSCURRENT:
            logger.warning(
                f"Cannot remove {AWSCURRENT} staging label, which may leave the secret {secret_id!r} "
                f"version {version_id!r} active"
            )
            continue

        try:
            client.update_secret_version_stage(secret_id, stage, remove_from=version_id)
        except (ClientError, BotoCoreError) as e:
            if is_gone_error(e):
                logger.debug(f"Secret {secret_id!r} version {version_id!r} already deleted")
                return
            raise StageUpdateError(secret_id, stage, e) from e
