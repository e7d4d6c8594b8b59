"""Grants.gov XML extract constants."""

import re

FILENAME_PREFIX = "GrantsDBExtract"
PRIMARY_SUFFIX = "v2"
ALTERNATE_SUFFIX = ""
ARCHIVE_EXT = ".zip"
DOCUMENT_EXT = ".xml"

# Links on the listing page, e.g. .../GrantsDBExtract20250225v2.zip
EXTRACT_LINK_PATTERN = re.compile(
    r"""href=["']([^"']*GrantsDBExtract\d{8}(?:v2)?\.zip)["']""",
    re.IGNORECASE,
)

# Root collection and record elements
ROOT_TAG = "Grants"
RECORD_TAG = "OpportunitySynopsisDetail_1_0"

# Record fields
OPPORTUNITY_ID = "OpportunityID"
OPPORTUNITY_NUMBER = "OpportunityNumber"
OPPORTUNITY_TITLE = "OpportunityTitle"
OPPORTUNITY_CATEGORY = "OpportunityCategory"
FUNDING_INSTRUMENT_TYPE = "FundingInstrumentType"
CATEGORY_OF_FUNDING_ACTIVITY = "CategoryOfFundingActivity"
CATEGORY_EXPLANATION = "CategoryExplanation"
ELIGIBLE_APPLICANTS = "EligibleApplicants"
AGENCY_NAME = "AgencyName"
AGENCY_CODE = "AgencyCode"
POST_DATE = "PostDate"
CLOSE_DATE = "CloseDate"
ESTIMATED_TOTAL_FUNDING = "EstimatedTotalProgramFunding"
AWARD_CEILING = "AwardCeiling"
AWARD_FLOOR = "AwardFloor"
COST_SHARING = "CostSharingOrMatchingRequirement"
DESCRIPTION = "Description"
ADDITIONAL_INFO_URL = "AdditionalInformationURL"
CONTACT_NAME = "GrantorContactName"
CONTACT_TEXT = "GrantorContactText"
CONTACT_EMAIL = "GrantorContactEmail"
CONTACT_EMAIL_ADDRESS = "GrantorContactEmailAddress"
CONTACT_PHONE = "GrantorContactPhoneNumber"

# Eligible applicant type codes
ELIGIBILITY_CODES: dict[str, str] = {
    "99": "Unrestricted",
    "00": "State governments",
    "01": "County governments",
    "02": "City or township governments",
    "04": "Special district governments",
    "05": "Independent school districts",
    "06": "Public and State controlled institutions of higher education",
    "07": "Native American tribal governments (Federally recognized)",
    "08": "Public housing authorities/Indian housing authorities",
    "11": "Native American tribal organizations (other than Federally recognized tribal governments)",
    "12": "Nonprofits having a 501(c)(3) status with the IRS, other than institutions of higher education",
    "13": "Nonprofits that do not have a 501(c)(3) status with the IRS, other than institutions of higher education",
    "20": "Private institutions of higher education",
    "21": "Individuals",
    "22": "For-profit organizations other than small businesses",
    "23": "Small businesses",
    "25": "Others",
}

# Category of funding activity codes
ACTIVITY_CATEGORY_CODES: dict[str, str] = {
    "ACA": "Affordable Care Act",
    "AG": "Agriculture",
    "AR": "Arts",
    "BC": "Business and Commerce",
    "CD": "Community Development",
    "CP": "Consumer Protection",
    "DPR": "Disaster Prevention and Relief",
    "ED": "Education",
    "ELT": "Employment, Labor and Training",
    "EN": "Energy",
    "ENV": "Environment",
    "FN": "Food and Nutrition",
    "HL": "Health",
    "HO": "Housing",
    "HU": "Humanities",
    "ISS": "Income Security and Social Services",
    "IS": "Information and Statistics",
    "LJL": "Law, Justice and Legal Services",
    "NR": "Natural Resources",
    "RA": "Recovery Act",
    "RD": "Regional Development",
    "ST": "Science and Technology",
    "T": "Transportation",
    "O": "Other",
}

# Tags inferred from CategoryExplanation text
ACTIVITY_KEYWORDS: tuple[str, ...] = (
    "Research",
    "Development",
    "Innovation",
    "Technology",
    "Healthcare",
    "Education",
    "Training",
    "Infrastructure",
    "Climate",
    "Energy",
    "Sustainability",
    "Community",
    "Rural",
    "Urban",
    "Minority",
    "Small Business",
    "Entrepreneurship",
    "International",
    "Security",
)
