"""
Outbound mail transport backed by Amazon SES v2.

Two operations are used:
  send_raw              - submit a fully built MIME message, returns the SES MessageId
  list_verified_senders - email identities that are verified and enabled for sending

Both are blocking boto3 calls; async callers go through ``run_blocking``.
botocore failures are re-raised as UpstreamServiceError. No retries.
"""

import logging

from botocore.exceptions import BotoCoreError, ClientError

from maildeck.errors import UpstreamServiceError

logger = logging.getLogger(__name__)


class SesTransport:
    def __init__(self, client):
        self.client = client

    def send_raw(
        self,
        raw: bytes,
        from_address: str,
        to: list[str],
        cc: list[str] | None = None,
        bcc: list[str] | None = None,
    ) -> str:
        """
        Dispatch a raw MIME message.

        Recipients are passed explicitly so Bcc addresses are delivered
        without appearing in the message headers.

        Returns:
            Provider-assigned message id
        """
        try:
            response = self.client.send_email(
                FromEmailAddress=from_address,
                Destination={
                    "ToAddresses": to,
                    "CcAddresses": cc or [],
                    "BccAddresses": bcc or [],
                },
                Content={"Raw": {"Data": raw}},
            )
        except (BotoCoreError, ClientError) as e:
            raise UpstreamServiceError(f"SES send failed: {str(e)}") from e

        message_id = response.get("MessageId")
        if not message_id:
            raise UpstreamServiceError("SES send returned no MessageId")
        return message_id

    def list_verified_senders(self) -> list[str]:
        """
        Return email-address identities verified and enabled for sending.

        Follows NextToken pagination until exhausted. Domain identities are
        ignored: only explicit addresses are offered as From choices.
        """
        senders: list[str] = []
        next_token = None

        try:
            while True:
                kwargs = {"PageSize": 100}
                if next_token:
                    kwargs["NextToken"] = next_token
                response = self.client.list_email_identities(**kwargs)

                for identity in response.get("EmailIdentities", []):
                    if identity.get("IdentityType") != "EMAIL_ADDRESS":
                        continue
                    if not identity.get("SendingEnabled"):
                        continue
                    if identity.get("VerificationStatus", "SUCCESS") != "SUCCESS":
                        continue
                    senders.append(identity["IdentityName"])

                next_token = response.get("NextToken")
                if not next_token:
                    break
        except (BotoCoreError, ClientError) as e:
            raise UpstreamServiceError(f"Failed to list SES identities: {str(e)}") from e

        logger.info(f"Resolved {len(senders)} verified sender(s) from SES")
        return senders
