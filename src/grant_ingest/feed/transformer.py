"""Map raw extract records into canonical grants."""

import logging
from datetime import date
from pathlib import Path
from typing import TYPE_CHECKING, Callable, Collection, Optional

from grant_ingest.models.cleaning import CleaningResult
from grant_ingest.models.grant import CanonicalGrant
from grant_ingest.models.raw import RawFeedRecord

from . import constants as c
from .parsers import (
    convert_date,
    expand_eligibility,
    infer_activity_categories,
    is_expired,
    parse_feed,
    parse_funding,
    split_contact,
)

if TYPE_CHECKING:
    from grant_ingest.cleaning.base import TextCleaner

logger = logging.getLogger(__name__)


class RecordTransformer:
    """
    Parse an extract document and build CanonicalGrant records.
    Expired records are dropped; records already in the store skip text cleaning.
    """

    def __init__(self, today: Optional[Callable[[], date]] = None):
        self._today = today or date.today

    def transform(
        self,
        path: str | Path,
        existing_keys: Collection[str],
        cleaner: "TextCleaner",
    ) -> list[CanonicalGrant]:
        """Return canonical grants in document order, after the expiry filter."""
        records = parse_feed(path)
        today = self._today()
        current = [r for r in records if not is_expired(r.text(c.CLOSE_DATE), today)]
        logger.info(
            "Parsed %d records from %s, %d expired, %d current",
            len(records),
            Path(path).name,
            len(records) - len(current),
            len(current),
        )

        grants: list[CanonicalGrant] = []
        seen: set[str] = set()
        cleaned = 0
        for raw in current:
            opp_id = raw.opportunity_id
            if not opp_id:
                logger.warning("Skipping record without %s", c.OPPORTUNITY_ID)
                continue
            if opp_id in seen:
                logger.warning("Skipping duplicate record %s", opp_id)
                continue
            seen.add(opp_id)
            known = opp_id in existing_keys
            if not known:
                cleaned += 1
            grants.append(self.transform_record(raw, cleaner=None if known else cleaner))
        logger.info("Transformed %d grants (%d sent to %s)", len(grants), cleaned, type(cleaner).__name__)
        return grants

    def transform_record(self, raw: RawFeedRecord, cleaner: Optional["TextCleaner"] = None) -> CanonicalGrant:
        """
        Build one CanonicalGrant. Without a cleaner the description and contact
        fields are carried through as published.
        """
        opp_id = raw.text(c.OPPORTUNITY_ID)
        description = raw.text(c.DESCRIPTION)
        contact_text = raw.text(c.CONTACT_TEXT)
        parts = split_contact(contact_text)
        raw_name = raw.text(c.CONTACT_NAME)
        name = raw_name or parts.name
        email = raw.text(c.CONTACT_EMAIL_ADDRESS) or raw.text(c.CONTACT_EMAIL) or parts.email
        phone = raw.text(c.CONTACT_PHONE) or parts.phone

        grant = CanonicalGrant(
            opportunity_id=opp_id,
            opportunity_number=raw.text(c.OPPORTUNITY_NUMBER),
            title=raw.text(c.OPPORTUNITY_TITLE),
            category=raw.text(c.OPPORTUNITY_CATEGORY),
            funding_type=raw.text(c.FUNDING_INSTRUMENT_TYPE),
            activity_category=infer_activity_categories(
                raw.data.get(c.CATEGORY_OF_FUNDING_ACTIVITY), raw.text(c.CATEGORY_EXPLANATION)
            ),
            eligible_applicants=expand_eligibility(raw.data.get(c.ELIGIBLE_APPLICANTS)),
            agency_name=raw.text(c.AGENCY_NAME),
            agency_code=raw.text(c.AGENCY_CODE),
            post_date=convert_date(raw.text(c.POST_DATE)),
            close_date=convert_date(raw.text(c.CLOSE_DATE)),
            total_funding=parse_funding(raw.text(c.ESTIMATED_TOTAL_FUNDING)),
            award_ceiling=parse_funding(raw.text(c.AWARD_CEILING)),
            award_floor=parse_funding(raw.text(c.AWARD_FLOOR)),
            cost_sharing=raw.text(c.COST_SHARING) == "Yes",
            description=description,
            additional_info_url=raw.text(c.ADDITIONAL_INFO_URL),
            grantor_contact_name=name or None,
            grantor_contact_email=email or None,
            grantor_contact_phone=phone or None,
        )
        if cleaner is None:
            return grant

        logger.debug("Cleaning text for %s", opp_id)
        result = cleaner.clean(description, raw_name or contact_text or None, email or None, phone or None)
        return self._apply_cleaning(grant, result)

    @staticmethod
    def _apply_cleaning(grant: CanonicalGrant, result: CleaningResult) -> CanonicalGrant:
        """Cleaned values win; fields the cleaner left empty keep the published value."""
        contact = result.contact
        return grant.model_copy(
            update={
                "description": result.description,
                "grantor_contact_name": contact.name or grant.grantor_contact_name,
                "grantor_contact_email": contact.email or grant.grantor_contact_email,
                "grantor_contact_phone": contact.phone or grant.grantor_contact_phone,
                "grantor_contact_name_source": contact.name_source,
                "grantor_contact_phone_valid": contact.phone_valid,
            }
        )
