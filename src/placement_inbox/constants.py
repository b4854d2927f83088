"""Constants for Placement Inbox."""

from datetime import timedelta
from pathlib import Path

# --- Config paths ---
CONFIG_DIR = Path.home() / ".placement-inbox"
DB_PATH = CONFIG_DIR / "tracker.db"

# --- Gmail API ---
SCOPES = [
    "openid",
    "https://www.googleapis.com/auth/gmail.readonly",
    "https://www.googleapis.com/auth/userinfo.email",
]
AUTH_URI = "https://accounts.google.com/o/oauth2/auth"
TOKEN_URI = "https://oauth2.googleapis.com/token"
MESSAGE_FORMAT = "full"
UNREAD_LABEL = "UNREAD"

# --- Sync tunables ---
SEARCH_WINDOW_DAYS = 30
QUERY_KEYWORD_LIMIT = 20  # provider rejects very long queries
DEFAULT_MAX_RESULTS = 50
FETCH_WORKERS = 10
MAX_BODY_LENGTH = 5000
TOKEN_REFRESH_MARGIN = timedelta(minutes=5)
SYNC_LOCK_TIMEOUT = timedelta(minutes=30)  # a crashed run frees the lock after this

# --- Browsing ---
LIST_LIMIT = 100
RECENT_WINDOW_DAYS = 7

# --- Classifier data ---
PLACEMENT_KEYWORDS = (
    # application
    "application",
    "applied",
    "apply",
    "candidate",
    "applicant",
    # interview
    "interview",
    "screening",
    "technical round",
    "hr round",
    "assessment",
    "coding test",
    "online test",
    "aptitude test",
    "hiring challenge",
    # offer
    "offer letter",
    "job offer",
    "selected",
    "congratulations",
    "welcome aboard",
    # rejection
    "regret",
    "unfortunately",
    "not selected",
    "not shortlisted",
    "rejected",
    # hiring
    "recruitment",
    "hiring",
    "job opportunity",
    "career",
    "position",
    "internship",
    "full-time",
    "placement",
    "campus",
    "walk-in",
    # companies
    "google",
    "microsoft",
    "amazon",
    "meta",
    "apple",
    "netflix",
    "infosys",
    "tcs",
    "wipro",
    "cognizant",
    "accenture",
    "deloitte",
    "goldman sachs",
    "morgan stanley",
    "jpmorgan",
    "uber",
    "flipkart",
    # platforms
    "linkedin",
    "naukri",
    "indeed",
    "glassdoor",
    "hackerrank",
    "hackerearth",
    "codingninjas",
    "leetcode",
    "interviewbit",
)

# Checked in this order; the first group with a match wins.
CATEGORY_PATTERNS = (
    (
        "interview",
        (
            "interview",
            "screening",
            "technical round",
            "hr round",
            "scheduled",
            "meeting invite",
            "video call",
            "zoom",
            "teams meeting",
        ),
    ),
    (
        "assessment",
        (
            "assessment",
            "test",
            "coding challenge",
            "online test",
            "aptitude",
            "hackerrank",
            "hackerearth",
            "codility",
        ),
    ),
    (
        "offer",
        (
            "offer letter",
            "job offer",
            "selected",
            "congratulations",
            "welcome",
            "compensation",
            "package",
            "joining",
        ),
    ),
    (
        "rejection",
        (
            "regret",
            "unfortunately",
            "not selected",
            "not shortlisted",
            "rejected",
            "not proceed",
            "other candidates",
        ),
    ),
    (
        "application",
        (
            "application received",
            "application submitted",
            "thank you for applying",
            "applied successfully",
            "resume received",
        ),
    ),
)

KNOWN_COMPANIES = (
    "Google",
    "Microsoft",
    "Amazon",
    "Meta",
    "Apple",
    "Netflix",
    "Infosys",
    "TCS",
    "Wipro",
    "Cognizant",
    "Accenture",
    "Deloitte",
    "Goldman Sachs",
    "Morgan Stanley",
    "JPMorgan",
    "Uber",
    "Flipkart",
    "Zomato",
    "Swiggy",
    "Paytm",
    "Adobe",
    "Oracle",
    "IBM",
    "Intel",
    "Qualcomm",
    "Samsung",
    "LinkedIn",
    "Twitter",
    "Salesforce",
)

GENERIC_MAIL_DOMAINS = ("gmail", "yahoo", "outlook", "hotmail", "mail")
