import json
from decimal import Decimal


# ---------------------------
# Utils: Decimal cleanup
# ---------------------------
def clean_decimals(obj):
    if isinstance(obj, list):
        return [clean_decimals(i) for i in obj]
    if isinstance(obj, dict):
        return {k: clean_decimals(v) for k, v in obj.items()}
    if isinstance(obj, Decimal):
        # whole numbers come back as int, the rest as float
        return int(obj) if obj % 1 == 0 else float(obj)
    return obj


# ---------------------------
# Utils: API Gateway responses
# ---------------------------
def response(status, body=None):
    return {
        "statusCode": status,
        "headers": {
            "Content-Type": "application/json",
            "Access-Control-Allow-Origin": "*",
            "Access-Control-Allow-Headers": (
                "Content-Type,X-Amz-Date,Authorization,X-Api-Key,"
                "X-Amz-Security-Token,x-tenant-id"
            ),
            "Access-Control-Allow-Methods": "OPTIONS,GET,POST,DELETE"
        },
        "body": "" if body is None else json.dumps(clean_decimals(body), default=str)
    }


# ---------------------------
# Utils: request parsing
# ---------------------------
def http_method(event):
    # REST API (v1) events carry httpMethod, HTTP API (v2) events carry requestContext.http.method
    method = event.get("httpMethod")
    if not method:
        method = ((event.get("requestContext") or {}).get("http") or {}).get("method")
    return str(method or "").upper()


def parse_body(event):
    """
    Decode the JSON body of an API Gateway event.
    Raises ValueError when the body is not a JSON object.
    """
    raw = event.get("body") or "{}"
    try:
        body = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ValueError("Invalid JSON body") from e
    if not isinstance(body, dict):
        raise ValueError("JSON body must be an object")
    return body


def tenant_id_from(event):
    """
    Tenant from the path, then the x-tenant-id header, then the Cognito claim.
    """
    path_params = event.get("pathParameters") or {}
    if path_params.get("tenant_id"):
        return path_params["tenant_id"]

    headers = event.get("headers") or {}
    tenant_id = headers.get("x-tenant-id") or headers.get("X-Tenant-Id")
    if tenant_id:
        return tenant_id

    claims = ((event.get("requestContext") or {}).get("authorizer") or {}).get("claims") or {}
    return claims.get("custom:tenant_id")
