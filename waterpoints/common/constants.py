"""Application constants."""

USER_AGENT = "waterpoints-harvest/1.0 (+research; contact: configured-email)"
COMMANDS = ("harvest", "export")
EXIT_SUCCESS = 0
EXIT_PARTIAL = 10
EXIT_HARD_FAIL = 20
JSON_LOG_FIELDS = (
    "timestamp",
    "run_id",
    "stage",
    "year",
    "agency",
    "answer_id",
    "source_code",
    "event",
    "status",
    "duration_ms",
    "rows_in",
    "rows_out",
    "error_code",
    "message",
)

# Fields expected on a row of the report listing.
LOCATION_FIELDS = frozenset(
    {
        "answerId",
        "agencyRecordId",
        "locationId",
        "newSourceName",
        "waterSourceType",
        "visitDate",
        "visitType",
        "endResult",
        "visitorName",
    }
)

# Fields expected on a per-answer detail payload.
DETAIL_FIELDS = frozenset(
    {
        "answerId",
        "formTypeId",
        "agencyRecordId",
        "answerCode",
        "newSourceCode",
        "newSourceName",
        "waterSourceName",
        "waterSourceStatus",
        "user",
        "insertDate",
        "informationSectionBgColor",
        "canDelete",
        "canEdit",
        "isTelephoneSurvey",
        "informationSection",
        "activitySection",
        "comment",
        "partUsed",
        "imageAnswers",
        "visitStaff",
    }
)

# Fields expected on a new-source (water point) detail payload.
SOURCE_FIELDS = frozenset(
    {
        "newSourceAnswerId",
        "code",
        "newSourceName",
        "agencyRecordId",
        "mergewatersource",
        "canEditNewSourceName",
        "canViewCommitteeMembers",
        "waterSourceName",
        "waterSourceTypeName",
        "waterSourceStatus",
        "statusPin",
        "sourceLatLng",
        "lastVisitDate",
        "isFlagged",
        "canUnflagWaterSource",
        "isCommitteeAvailable",
        "isFundAvailable",
        "installedBy",
        "installDate",
        "DTAW",
        "TTAW",
        "zoneMembership",
        "committeeMembers",
        "informationSectionBgColor",
        "informationSection",
        "activitySection",
        "agencies",
        "formAnswers",
    }
)

# Detail scalars copied onto the flat record; these win over listing fields.
DETAIL_SCALAR_FIELDS = (
    "answerId",
    "formTypeId",
    "agencyRecordId",
    "answerCode",
    "newSourceCode",
    "newSourceName",
    "waterSourceName",
    "waterSourceStatus",
    "user",
    "insertDate",
    "informationSectionBgColor",
    "canDelete",
    "canEdit",
    "isTelephoneSurvey",
)

QUESTION_SECTIONS = ("informationSection", "activitySection")
