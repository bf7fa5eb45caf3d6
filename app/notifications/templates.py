from typing import Tuple

# Each template returns (subject, html body)


def otp_verification(otp: str) -> Tuple[str, str]:
    return (
        "Verification email from EduElevate",
        f"<p>Your EduElevate verification code is <strong>{otp}</strong>.</p>"
        "<p>The code is valid for 5 minutes.</p>",
    )


def course_enrollment(course_name: str, student_name: str) -> Tuple[str, str]:
    return (
        f"Successfully Enrolled into {course_name}",
        f"<p>Dear {student_name},</p>"
        f"<p>You have successfully enrolled in <strong>{course_name}</strong>. "
        "Head to your dashboard to start learning.</p>",
    )


def password_updated(email: str, first_name: str) -> Tuple[str, str]:
    return (
        "Password Updated Successfully",
        f"<p>Hey {first_name},</p>"
        f"<p>The password for your account {email} was updated.</p>"
        "<p>If you did not make this change, reset your password immediately.</p>",
    )


def password_reset(email: str, first_name: str, url: str) -> Tuple[str, str]:
    return (
        "Password Reset Request - EduElevate",
        f"<p>Hey {first_name},</p>"
        f"<p>A password reset was requested for {email}. "
        f'<a href="{url}">Reset your password</a>. The link expires in 5 minutes.</p>',
    )


def payment_success(student_name: str, amount: float, order_id: str, payment_id: str) -> Tuple[str, str]:
    return (
        "Payment Received",
        f"<p>Dear {student_name},</p>"
        f"<p>We have received a payment of <strong>₹{amount}</strong>.</p>"
        f"<p>Payment ID: {payment_id}<br>Order ID: {order_id}</p>",
    )
