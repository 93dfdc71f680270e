import httpx

ARRIVALS_FIELDS = "LineName,DestinationName,EstimatedTime,RegistrationNumber,DirectionID"
JOURNEY_PROGRESS_FIELDS = "StopPointName,EstimatedTime"
STOP_DETAIL_FIELDS = "StopPointName,Towards,StopPointIndicator,StopPointType,Latitude,Longitude"
STOP_MESSAGE_FIELDS = "MessagePriority,MessageText,StartTime,ExpireTime"
STOP_LIST_FIELDS = (
    "StopPointName,StopCode1,Towards,StopPointIndicator,StopPointType,Latitude,Longitude"
)


class FeedRequests:
    """Builds feed URLs; the ``ReturnList`` order fixes the response field positions."""

    def __init__(self, base_url: str) -> None:
        self.base_url = base_url

    def _url(self, **params: str) -> str:
        return str(httpx.URL(self.base_url, params=params))

    def arrivals(self, stop_code: str) -> str:
        return self._url(StopCode1=stop_code, ReturnList=ARRIVALS_FIELDS)

    def journey_progress(self, registration_number: str, direction_id: str) -> str:
        return self._url(
            RegistrationNumber=registration_number,
            DirectionID=direction_id,
            ReturnList=JOURNEY_PROGRESS_FIELDS,
        )

    def stop_detail(self, stop_code: str) -> str:
        return self._url(StopCode1=stop_code, ReturnList=STOP_DETAIL_FIELDS)

    def stop_messages(self, stop_code: str) -> str:
        return self._url(StopCode1=stop_code, ReturnList=STOP_MESSAGE_FIELDS)

    def stops_by_name(self, name: str) -> str:
        return self._url(StopPointName=name, ReturnList=STOP_LIST_FIELDS)
