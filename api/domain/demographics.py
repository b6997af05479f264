# SPDX-License-Identifier: Apache-2.0

"""
Demographic classification of family members.

This module contains pure functions mapping raw member attributes (age,
free-text gender, civil status, vulnerable-group tags, casualty markers)
to canonical reporting buckets. Free-text matching is driven by ordered
rule tables; the first matching rule wins, so table order is part of the
contract.
"""

import json
import re
from dataclasses import dataclass, field
from typing import Any, Iterable, List, Optional, Sequence, Tuple

from models.entities import IncidentFamilyMember
from models.enums import CasualtyType


# Age bands, inclusive lower bound and inclusive upper bound (None = open).
AGE_BANDS: Tuple[Tuple[int, Optional[int], str], ...] = (
    (0, 0, "infant"),
    (1, 2, "toddler"),
    (3, 5, "preschooler"),
    (6, 12, "school_age"),
    (13, 17, "teen_age"),
    (18, 59, "adult"),
    (60, None, "elderly"),
)

AGE_BUCKETS = tuple(bucket for _, _, bucket in AGE_BANDS)

# "female" contains "male", so the female rule must come first.
GENDER_RULES: Tuple[Tuple[Tuple[str, ...], str], ...] = (
    (("female",), "female"),
    (("male",), "male"),
)
GENDER_DEFAULT = "lgbtqia"
GENDER_BUCKETS = ("male", "female", "lgbtqia")

CIVIL_STATUS_RULES: Tuple[Tuple[Tuple[str, ...], str], ...] = (
    (("single",), "single"),
    (("married",), "married"),
    (("widow",), "widowed"),
    (("separated",), "separated"),
    (("live in", "cohabit"), "live_in"),
)
# Unmatched civil status counts as single.
CIVIL_STATUS_DEFAULT = "single"
CIVIL_STATUS_BUCKETS = ("single", "married", "widowed", "separated", "live_in")

VULNERABLE_GROUP_RULES: Tuple[Tuple[Tuple[str, ...], str], ...] = (
    (("pwd",), "pwd"),
    (("pregnant",), "pregnant"),
    (("elderly",), "elderly"),
    (("lactating",), "lactating_mother"),
    (("solo parent",), "solo_parent"),
    (("indigenous",), "indigenous_people"),
    (("lgbtqia",), "lgbtqia_persons"),
    (("child headed",), "child_headed_household"),
    (("gender based", "gbv"), "gbv_victims"),
    (("4ps",), "four_ps_beneficiaries"),
    (("single headed",), "single_headed_family"),
)
VULNERABLE_GROUP_BUCKETS = tuple(bucket for _, bucket in VULNERABLE_GROUP_RULES)

AGE_CATEGORY_RULES: Tuple[Tuple[Tuple[str, ...], str], ...] = (
    (("infant",), "infant"),
    (("toddler",), "toddler"),
    (("preschool",), "preschooler"),
    (("school age",), "school_age"),
    (("teen",), "teen_age"),
    (("adult",), "adult"),
    (("elderly",), "elderly"),
)

ETHNICITY_RULES: Tuple[Tuple[Tuple[str, ...], str], ...] = (
    (("christian",), "christian"),
    (("subanen",), "subanen_ip"),
    (("moro",), "moro"),
)
ETHNICITY_BUCKETS = ("christian", "subanen_ip", "moro")

# Casualty markers are matched exactly, not by substring.
CASUALTY_LABELS = {
    CasualtyType.DEAD.value: "dead",
    CasualtyType.INJURED_ILL.value: "injured",
    "Injured-ill": "injured",
    CasualtyType.MISSING.value: "missing",
}
CASUALTY_BUCKETS = ("dead", "injured", "missing")


class MalformedVulnerableGroupsError(ValueError):
    """Raised when stored vulnerable-group data is not a list of tags."""


@dataclass
class MemberClassification:
    """Canonical buckets for a single family member."""
    age_bucket: str
    age_category_bucket: Optional[str]
    gender: str
    civil_status: str
    ethnicity: Optional[str]
    casualty: Optional[str]
    vulnerable_groups: List[str] = field(default_factory=list)
    vulnerable_groups_valid: bool = True


def normalize_text(value: Any) -> str:
    """
    Normalize free text for substring matching.

    Lowercases, turns hyphens and underscores into spaces and collapses
    whitespace, so "Live-In/Cohabiting" and "live in" compare equal.
    """
    if value is None:
        return ""
    text = str(value).lower().replace("-", " ").replace("_", " ")
    return re.sub(r"\s+", " ", text).strip()


def match_rules(value: Any, rules: Sequence[Tuple[Tuple[str, ...], str]]) -> Optional[str]:
    """
    Return the bucket of the first rule with a substring found in value.

    Args:
        value: Raw text to classify
        rules: Ordered (substrings, bucket) pairs

    Returns:
        Matching bucket or None
    """
    text = normalize_text(value)
    if not text:
        return None

    for needles, bucket in rules:
        if any(needle in text for needle in needles):
            return bucket

    return None


def classify_age(age: int) -> str:
    """
    Map an age in whole years to its age bucket.

    Args:
        age: Age in years (0 or greater)

    Returns:
        One of AGE_BUCKETS

    Raises:
        ValueError: If age is negative or not an integer
    """
    if isinstance(age, bool) or not isinstance(age, int):
        raise ValueError(f"Age must be an integer, got {age!r}")
    if age < 0:
        raise ValueError(f"Age cannot be negative: {age}")

    for lower, upper, bucket in AGE_BANDS:
        if age >= lower and (upper is None or age <= upper):
            return bucket

    # Unreachable: the last band is open-ended.
    raise ValueError(f"No age band for {age}")


def classify_age_category(label: Optional[str]) -> Optional[str]:
    """Map a stored age-category label to its bucket, if recognisable."""
    return match_rules(label, AGE_CATEGORY_RULES)


def classify_gender(value: Optional[str]) -> str:
    """Map free-text gender identity to male, female or lgbtqia."""
    return match_rules(value, GENDER_RULES) or GENDER_DEFAULT


def classify_civil_status(value: Optional[str]) -> str:
    """Map a civil status label to its bucket; unmatched values count as single."""
    return match_rules(value, CIVIL_STATUS_RULES) or CIVIL_STATUS_DEFAULT


def classify_ethnicity(value: Optional[str]) -> Optional[str]:
    return match_rules(value, ETHNICITY_RULES)


def classify_casualty(value: Optional[str]) -> Optional[str]:
    """
    Map a casualty marker to dead, injured or missing.

    Args:
        value: Stored casualty marker

    Returns:
        Casualty bucket, or None when absent or unrecognised
    """
    if value is None:
        return None
    return CASUALTY_LABELS.get(str(value).strip())


def classify_vulnerable_tags(tags: Iterable[str]) -> List[str]:
    """
    Map vulnerable-group tags to buckets.

    Each tag is matched independently against every rule, so one member can
    land in several buckets. Duplicates collapse and tags with no match are
    ignored.

    Args:
        tags: Vulnerable-group tags

    Returns:
        Buckets in rule-table order, without duplicates
    """
    matched = set()

    for tag in tags:
        text = normalize_text(tag)
        if not text:
            continue
        for needles, bucket in VULNERABLE_GROUP_RULES:
            if any(needle in text for needle in needles):
                matched.add(bucket)

    return [bucket for bucket in VULNERABLE_GROUP_BUCKETS if bucket in matched]


def parse_vulnerable_groups(raw: Any) -> List[str]:
    """
    Decode stored vulnerable-group data into a list of tags.

    Args:
        raw: A list of tags, a JSON array string, or None

    Returns:
        List of string tags

    Raises:
        MalformedVulnerableGroupsError: If the data is not a list of tags
    """
    if raw is None:
        return []

    value = raw
    if isinstance(raw, (bytes, str)):
        if not raw.strip():
            return []
        try:
            value = json.loads(raw)
        except (TypeError, ValueError) as e:
            raise MalformedVulnerableGroupsError(f"Vulnerable groups is not valid JSON: {e}")

    if not isinstance(value, (list, tuple)):
        raise MalformedVulnerableGroupsError(
            f"Vulnerable groups must be an array, got {type(value).__name__}"
        )

    return [str(tag) for tag in value if isinstance(tag, str)]


def classify_member(member: IncidentFamilyMember) -> MemberClassification:
    """
    Classify every demographic attribute of a member.

    Malformed vulnerable-group data leaves the member without vulnerable
    buckets and flags the classification instead of failing.

    Args:
        member: Family member to classify

    Returns:
        MemberClassification with all buckets
    """
    try:
        tags = parse_vulnerable_groups(member.vulnerable_groups)
        vulnerable_groups = classify_vulnerable_tags(tags)
        valid = True
    except MalformedVulnerableGroupsError:
        vulnerable_groups = []
        valid = False

    return MemberClassification(
        age_bucket=classify_age(member.age),
        age_category_bucket=classify_age_category(member.category),
        gender=classify_gender(member.sex_gender_identity),
        civil_status=classify_civil_status(member.civil_status),
        ethnicity=classify_ethnicity(member.ethnicity),
        casualty=classify_casualty(member.casualty),
        vulnerable_groups=vulnerable_groups,
        vulnerable_groups_valid=valid
    )
