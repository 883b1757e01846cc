"""Built-in platform adapters: Google Ads, Google Analytics, Facebook, TikTok, Microsoft.

None of them call a real API; performance data is a fixed sample.
"""

from typing import Dict, Any

from adaudit.connectors.base import PlatformAdapter
from adaudit.core.exceptions import UnsupportedPlatformError


class GoogleAdsAdapter(PlatformAdapter):
    """Google Ads search and display campaigns."""

    platform_id = "google-ads"
    name = "Google Ads"
    authorize_url = "https://accounts.google.com/o/oauth2/v2/auth"
    scope = "https://www.googleapis.com/auth/adwords"
    api_base = "https://googleads.googleapis.com/v14"

    def campaign_data(self) -> Dict[str, Any]:
        return {
            "campaigns": [
                {
                    "name": "Search Campaign 1",
                    "impressions": 125000,
                    "clicks": 3200,
                    "ctr": 2.56,
                    "cost": 4800.50,
                    "conversions": 85,
                    "conversionRate": 2.66,
                    "cpc": 1.50,
                },
                {
                    "name": "Display Campaign 1",
                    "impressions": 890000,
                    "clicks": 2100,
                    "ctr": 0.24,
                    "cost": 1250.25,
                    "conversions": 22,
                    "conversionRate": 1.05,
                    "cpc": 0.60,
                },
            ],
            "totalSpend": 6050.75,
            "totalImpressions": 1015000,
            "totalClicks": 5300,
            "totalConversions": 107,
            "averageCpc": 1.14,
        }


class FacebookAdsAdapter(PlatformAdapter):
    """Facebook (Meta) ad sets."""

    platform_id = "facebook-ads"
    name = "Facebook Ads"
    authorize_url = "https://www.facebook.com/v18.0/dialog/oauth"
    scope = "ads_read,ads_management"
    api_base = "https://graph.facebook.com/v18.0"

    def campaign_data(self) -> Dict[str, Any]:
        return {
            "adSets": [
                {
                    "name": "Interest Targeting",
                    "reach": 45000,
                    "impressions": 156000,
                    "clicks": 2800,
                    "ctr": 1.79,
                    "cost": 3200.00,
                    "conversions": 92,
                    "roas": 2.87,
                },
                {
                    "name": "Lookalike Audience",
                    "reach": 38000,
                    "impressions": 124000,
                    "clicks": 1950,
                    "ctr": 1.57,
                    "cost": 2400.00,
                    "conversions": 67,
                    "roas": 3.12,
                },
            ],
            "totalSpend": 5600.00,
            "totalReach": 83000,
            "totalImpressions": 280000,
            "totalClicks": 4750,
            "totalConversions": 159,
            "averageRoas": 2.99,
        }


class TikTokAdsAdapter(PlatformAdapter):
    """TikTok video campaigns."""

    platform_id = "tiktok-ads"
    name = "TikTok Ads"
    authorize_url = "https://ads.tiktok.com/marketing_api/auth"
    scope = "advertiser_read,campaign_read"
    api_base = "https://business-api.tiktok.com/open_api/v1.3"

    def campaign_data(self) -> Dict[str, Any]:
        return {
            "campaigns": [
                {
                    "name": "Video Campaign",
                    "videoViews": 245000,
                    "impressions": 890000,
                    "clicks": 12500,
                    "ctr": 1.40,
                    "cost": 1800.00,
                    "conversions": 78,
                    "videoCompletionRate": 0.68,
                }
            ],
            "totalSpend": 1800.00,
            "totalVideoViews": 245000,
            "totalImpressions": 890000,
            "totalClicks": 12500,
            "averageCompletionRate": 0.68,
        }


class _SampleCampaignAdapter(PlatformAdapter):
    """Platforms without a dedicated sample share one generic campaign."""

    def campaign_data(self) -> Dict[str, Any]:
        return {
            "campaigns": [
                {
                    "name": "Sample Campaign",
                    "impressions": 100000,
                    "clicks": 2000,
                    "cost": 1000.00,
                    "conversions": 50,
                }
            ],
            "totalSpend": 1000.00,
        }


class GoogleAnalyticsAdapter(_SampleCampaignAdapter):
    platform_id = "google-analytics"
    name = "Google Analytics"
    authorize_url = "https://accounts.google.com/o/oauth2/v2/auth"
    scope = "https://www.googleapis.com/auth/analytics.readonly"
    api_base = "https://analyticsreporting.googleapis.com/v4"


class MicrosoftAdsAdapter(_SampleCampaignAdapter):
    platform_id = "microsoft-ads"
    name = "Microsoft Ads"
    authorize_url = "https://login.microsoftonline.com/common/oauth2/v2.0/authorize"
    scope = "https://ads.microsoft.com/ads.manage"
    api_base = "https://advertising.microsoft.com/api/advertiser"


PLATFORM_REGISTRY: Dict[str, type] = {
    "google-ads": GoogleAdsAdapter,
    "google-analytics": GoogleAnalyticsAdapter,
    "facebook-ads": FacebookAdsAdapter,
    "tiktok-ads": TikTokAdsAdapter,
    "microsoft-ads": MicrosoftAdsAdapter,
}


def get_platform(platform: str) -> PlatformAdapter:
    """Factory: get a platform adapter instance by identifier."""
    cls = PLATFORM_REGISTRY.get(platform)
    if not cls:
        raise UnsupportedPlatformError(f"Unsupported platform: {platform}")
    return cls()
