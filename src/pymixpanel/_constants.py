"""Internal constants shared across the library."""

BASE_URL = "https://api.mixpanel.com/"
FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"

#: Status attached to failures the collector will never accept.
#: Overridable per client via ``MixpanelConfig.non_retryable_status``.
NON_RETRYABLE_STATUS = 400

PATHS_BY_METHOD: dict[str, str] = {
    "track": "track#live-event",
    "setUser": "track#create-identity",
    "setUserProps": "engage#profile-set",
}

IDENTIFY_EVENT = "$identify"
