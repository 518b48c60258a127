"""
Eligibility filter for welcome-balance bids.
"""

from typing import List

from .controls import Customer, EligibilityProfile


def eligibility_failures(customer: Customer, profile: EligibilityProfile) -> List[str]:
    """
    Check a customer against every constraint present in a profile.

    Args:
        customer: Customer to check
        profile: Eligibility profile attached to a bid

    Returns:
        One reason per violated constraint, empty when eligible
    """
    failures = []

    if profile.income_min is not None and customer.income < profile.income_min:
        failures.append(f"income {customer.income:.0f} below minimum {profile.income_min:.0f}")
    if profile.income_max is not None and customer.income > profile.income_max:
        failures.append(f"income {customer.income:.0f} above maximum {profile.income_max:.0f}")

    if profile.age_min is not None and customer.age < profile.age_min:
        failures.append(f"age {customer.age} below minimum {profile.age_min}")
    if profile.age_max is not None and customer.age > profile.age_max:
        failures.append(f"age {customer.age} above maximum {profile.age_max}")

    if profile.credit_score_min is not None and customer.credit_score < profile.credit_score_min:
        failures.append(f"credit score {customer.credit_score} below minimum {profile.credit_score_min}")
    if profile.credit_score_max is not None and customer.credit_score > profile.credit_score_max:
        failures.append(f"credit score {customer.credit_score} above maximum {profile.credit_score_max}")

    if profile.regions is not None and customer.location not in profile.regions:
        failures.append(f"location {customer.location} not in {', '.join(profile.regions)}")

    if profile.nationalities is not None and customer.nationality not in profile.nationalities:
        failures.append(f"nationality {customer.nationality} not accepted")

    if (
        profile.debt_burden_ratio_max is not None
        and customer.debt_burden_ratio > profile.debt_burden_ratio_max
    ):
        failures.append(
            f"debt burden {customer.debt_burden_ratio:.2f} above maximum {profile.debt_burden_ratio_max:.2f}"
        )

    # The allow-list only restricts customers applying through a partner
    if (
        profile.cobrand_partners is not None
        and customer.cobrand_partner
        and customer.cobrand_partner not in profile.cobrand_partners
    ):
        failures.append(f"cobrand partner {customer.cobrand_partner} not accepted")

    return failures


def is_eligible(customer: Customer, profile: EligibilityProfile) -> bool:
    """Whether the customer satisfies every present constraint of the profile."""
    return not eligibility_failures(customer, profile)
