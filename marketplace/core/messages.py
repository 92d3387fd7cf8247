"""User-facing message catalogue shared by controllers and errors."""


class SUCCESS:
    USER_CREATED = "User registered successfully"
    LOGIN_SUCCESS = "Login successful"
    LOGOUT_SUCCESS = "Logged out successfully"
    USER_PROFILE_FETCHED = "User profile fetched successfully"
    TOKEN_REFRESHED = "Access token refreshed"
    SESSION_ACTIVE = "Session active"
    OTP_SENT = "OTP sent successfully"
    OTP_RESENT = "OTP resent successfully"
    PASSWORD_RESET_SUCCESS = "Password reset successfully"
    PASSWORD_CHANGED = "Password changed successfully"


class ERROR:
    REQUIRED_FIELDS = "Please fill all required fields"
    INVALID_EMAIL = "Email format is invalid"
    EMAIL_EXISTS = "Email already exists"
    INVALID_CREDENTIALS = "Invalid email or password"
    USER_NOT_FOUND = "User not exists with this email check email"
    INVALID_OLD_PASSWORD = "Current password is incorrect"
    PASSWORD_SAME_AS_OLD = "New password must be different from current password"
    PASSWORD_POLICY = (
        "Password must be 8-16 characters and include uppercase, lowercase, "
        "number, and special character"
    )
    NAME_POLICY = "Name must contain only alphabets (A-Z a-z)"
    PHONE_TOO_SHORT = "Phone number must be at least 10 digits"
    ROLE_NOT_ALLOWED = "Role must be vendor or buyer"

    OTP_REQUIRED = "OTP is required"
    INVALID_OTP = "OTP is invalid try again"
    OTP_EXPIRED = "OTP expired genrate new otp"

    UNAUTHORIZED = "Unauthorized access"
    FORBIDDEN = "You do not have permission to perform this action"
    INVALID_TOKEN = "Invalid token"
    INVALID_ENCRYPTED_PAYLOAD = "Invalid encrypted payload"

    SERVER_ERROR = "Something went wrong. Please try again."
    ROUTE_NOT_FOUND = "Route not found"
    METHOD_NOT_ALLOWED = "This HTTP method is not allowed for this route"
