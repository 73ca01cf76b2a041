# Account email (password reset)
import os
import resend
from typing import Dict
from dotenv import load_dotenv

load_dotenv()


class EmailService:
    """
    Centralized email service using Resend
    """

    def __init__(self):
        """Initialize Resend with API key"""
        self.api_key = os.getenv("RESEND_API_KEY")
        self.from_email = os.getenv("RESEND_FROM_EMAIL", "onboarding@resend.dev")
        self.disabled = os.getenv("TESTING") == "True" or not self.api_key
        if self.disabled:
            print("[EMAIL] EmailService disabled (test mode or no RESEND_API_KEY)")
            return

        resend.api_key = self.api_key

    def send_password_reset(self, to_email: str, reset_url: str, expires_minutes: int) -> Dict:
        """
        Send a password reset link

        Args:
            to_email: Account email address
            reset_url: Link carrying the signed reset token
            expires_minutes: How long the link stays valid

        Returns:
            Dict with 'success' boolean and 'message' or 'error'
        """
        if self.disabled:
            print(f"[EMAIL] Password reset for {to_email} not sent (email disabled)")
            return {"success": True, "message": "Email disabled", "email_id": None}

        try:
            params = {
                "from": self.from_email,
                "to": [to_email],
                "subject": "Reset your password",
                "html": f"""
                    <html>
                        <body style="font-family: Arial, sans-serif; color: #333;">
                            <h2>Password reset</h2>
                            <p>We received a request to reset the password for this account.</p>
                            <p>
                                <a href="{reset_url}"
                                   style="background: #2563eb; color: white; padding: 10px 18px;
                                          border-radius: 6px; text-decoration: none;">
                                    Choose a new password
                                </a>
                            </p>
                            <p>This link expires in {expires_minutes} minutes. If you did not ask
                               for a reset you can ignore this email.</p>
                        </body>
                    </html>
                """,
            }

            email_response = resend.Emails.send(params)

            return {
                "success": True,
                "message": "Password reset email sent",
                "email_id": email_response.get("id"),
            }

        except Exception as e:
            print(f"[EMAIL] Failed to send password reset to {to_email}: {e}")
            return {"success": False, "error": str(e)}


# Create a singleton instance
email_service = EmailService()
