from django.db import migrations, models


class Migration(migrations.Migration):
    dependencies = [
        ("assemblies", "0001_initial"),
    ]

    operations = [
        migrations.AlterField(
            model_name="assemblyauditlog",
            name="action",
            field=models.CharField(
                choices=[
                    ("assembly_created", "Assembly created"),
                    ("assembly_started", "Assembly started"),
                    ("assembly_finished", "Assembly finished"),
                    ("assembly_cancelled", "Assembly cancelled"),
                    ("checkin_code_issued", "Check-in code issued"),
                    ("checkin_token_issued", "Check-in link issued"),
                    ("participant_checked_in", "Participant checked in"),
                    ("participant_left", "Participant left"),
                    ("participant_registered", "Participant registered"),
                    ("participant_updated", "Participant updated"),
                    ("participant_joined", "Participant marked present"),
                    ("participant_removed", "Participant removed"),
                    ("weight_changed", "Voting weight changed"),
                    ("proxy_uploaded", "Proxy document uploaded"),
                    ("proxy_approved", "Proxy approved"),
                    ("proxy_rejected", "Proxy rejected"),
                    ("voting_started", "Voting started"),
                    ("voting_code_issued", "Voting code issued"),
                    ("voting_closed", "Voting closed"),
                    ("minutes_generated", "Minutes generated"),
                    ("minutes_approved", "Minutes approved"),
                    ("minutes_published", "Minutes published"),
                ],
                max_length=50,
                verbose_name="Action",
            ),
        ),
    ]
